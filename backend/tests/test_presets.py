import pytest

from app.core.errors import DuplicateNameError, NotFoundError, ValidationError
from app.schemas.contracts import LocalizationConfig
from app.services.presets import snapshot


def test_duplicate_name_rejected_and_first_config_kept(preset_store):
    preset_store.create("X", LocalizationConfig(target_locale="Japan"))
    with pytest.raises(DuplicateNameError):
        preset_store.create("X", LocalizationConfig(target_locale="Brazil"))
    assert preset_store.get("X").target_locale == "Japan"
    assert len(preset_store.list()) == 1


def test_blank_name_is_validation_error(preset_store):
    with pytest.raises(ValidationError):
        preset_store.create("  ", LocalizationConfig(target_locale="Japan"))


def test_update_replaces_whole_config(preset_store):
    preset_store.create("jp", LocalizationConfig(target_locale="Japan", remove_branding=True, brand_color="#ff0000"))
    updated = preset_store.update("jp", LocalizationConfig(target_locale="Korea"))
    assert updated.target_locale == "Korea"
    assert updated.remove_branding is False
    assert updated.brand_color == ""
    assert updated.updated_at >= updated.created_at


def test_update_and_delete_missing_raise_not_found(preset_store):
    with pytest.raises(NotFoundError):
        preset_store.update("nope", LocalizationConfig(target_locale="Japan"))
    with pytest.raises(NotFoundError):
        preset_store.delete("nope")
    with pytest.raises(NotFoundError):
        preset_store.get("nope")


def test_delete_then_name_available_again(preset_store):
    preset_store.create("jp", LocalizationConfig(target_locale="Japan"))
    assert not preset_store.is_name_available("jp")
    preset_store.delete("jp")
    assert preset_store.is_name_available("jp")
    assert not preset_store.is_name_available("")


def test_get_by_id_and_list_projection(preset_store):
    created = preset_store.create("jp", LocalizationConfig(target_locale="Japan", style_hints="night"))
    assert preset_store.get_by_id(created.id).name == "jp"
    summary = preset_store.list()[0]
    assert (summary.name, summary.target_locale) == ("jp", "Japan")
    with pytest.raises(NotFoundError):
        preset_store.get_by_id(9999)


def test_snapshot_is_independent_of_later_edits(preset_store):
    preset = preset_store.create("jp", LocalizationConfig(target_locale="Japan"))
    frozen = snapshot(preset)
    preset_store.update("jp", LocalizationConfig(target_locale="Mexico"))
    assert frozen.target_locale == "Japan"


def test_blank_target_locale_rejected():
    with pytest.raises(ValueError):
        LocalizationConfig(target_locale=" ")


def test_bad_logo_rejected_when_preset_is_created(service):
    with pytest.raises(ValidationError, match="base64"):
        service.create_preset("logo", {"target_locale": "Peru", "attach_logo": True, "logo_data": "not base64!!"})
    assert service.is_preset_name_available("logo")


def test_logo_is_stored_as_bare_base64(preset_store):
    config = LocalizationConfig(target_locale="Peru", attach_logo=True, logo_data="data:image/png;base64,bG9n\nby1i\neXRlcw==")
    assert config.logo_data == "bG9nby1ieXRlcw=="
    assert preset_store.create("logo", config).logo_data == "bG9nby1ieXRlcw=="
    assert LocalizationConfig(target_locale="Peru", logo_data="  ").logo_data is None
