from __future__ import annotations

import logging
from typing import List, Optional

from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from app.core.errors import DuplicateNameError, NotFoundError, ValidationError
from app.models.entities import Preset, utc_now
from app.schemas.contracts import LocalizationConfig, PresetSummary

logger = logging.getLogger(__name__)

CONFIG_FIELDS = tuple(LocalizationConfig.model_fields)


def _clean_name(name: str) -> str:
    if not name or not name.strip():
        raise ValidationError("Preset name is required")
    return name.strip()


def snapshot(preset: Preset) -> LocalizationConfig:
    """Copy of the preset's config, detached from later edits of the preset."""
    return LocalizationConfig.model_validate({field: getattr(preset, field) for field in CONFIG_FIELDS})


class PresetStore:
    def __init__(self, engine: Engine):
        self.engine = engine

    def create(self, name: str, config: LocalizationConfig) -> Preset:
        name = _clean_name(name)
        with Session(self.engine) as session:
            if self._by_name(session, name) is not None:
                raise DuplicateNameError(f'Preset with name "{name}" already exists')
            preset = Preset(name=name, **config.model_dump())
            session.add(preset)
            try:
                session.commit()
            except IntegrityError as exc:
                # another writer inserted the same name between check and insert
                session.rollback()
                raise DuplicateNameError(f'Preset with name "{name}" already exists') from exc
            session.refresh(preset)
        logger.info("Created preset %s (%s)", preset.name, preset.target_locale)
        return preset

    def update(self, name: str, config: LocalizationConfig) -> Preset:
        name = _clean_name(name)
        with Session(self.engine) as session:
            preset = self._by_name(session, name)
            if preset is None:
                raise NotFoundError(f'Preset "{name}" not found')
            for field, value in config.model_dump().items():
                setattr(preset, field, value)
            preset.updated_at = utc_now()
            session.add(preset)
            session.commit()
            session.refresh(preset)
        logger.info("Updated preset %s", name)
        return preset

    def delete(self, name: str) -> None:
        name = _clean_name(name)
        with Session(self.engine) as session:
            preset = self._by_name(session, name)
            if preset is None:
                raise NotFoundError(f'Preset "{name}" not found')
            session.delete(preset)
            session.commit()
        logger.info("Deleted preset %s", name)

    def find(self, name: str) -> Optional[Preset]:
        with Session(self.engine) as session:
            return self._by_name(session, _clean_name(name))

    def get(self, name: str) -> Preset:
        preset = self.find(name)
        if preset is None:
            raise NotFoundError(f'Preset "{name}" not found')
        return preset

    def get_by_id(self, preset_id: int) -> Preset:
        with Session(self.engine) as session:
            preset = session.get(Preset, preset_id)
        if preset is None:
            raise NotFoundError(f"Preset {preset_id} not found")
        return preset

    def list(self) -> List[PresetSummary]:
        with Session(self.engine) as session:
            presets = session.exec(select(Preset).order_by(Preset.created_at.desc(), Preset.id.desc())).all()
        return [
            PresetSummary(
                id=p.id,
                name=p.name,
                target_locale=p.target_locale,
                created_at=p.created_at,
                updated_at=p.updated_at,
            )
            for p in presets
        ]

    def is_name_available(self, name: str) -> bool:
        if not name or not name.strip():
            return False
        return self.find(name) is None

    @staticmethod
    def _by_name(session: Session, name: str) -> Optional[Preset]:
        return session.exec(select(Preset).where(Preset.name == name)).first()
