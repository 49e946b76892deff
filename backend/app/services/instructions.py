from app.schemas.contracts import LocalizationConfig

BASE_TEMPLATE = """
Generate a new version of this image located in {locale}, keeping the same context but adapting the visual elements.

CORE INSTRUCTIONS:
1. CONTEXT: Maintain the original scenario but transplanted to {locale}.
2. FLEXIBILITY: Change people, geometry, environment, and atmosphere to be authentic.
   - PEOPLE: Update ethnicity, fashion, and appearance.
   - GEOMETRY & ENVIRONMENT: Redesign architecture and background.
   - ATMOSPHERE: Adapt lighting and mood.

BRANDING ADJUSTMENTS:{branding}

The output should be a distinct new variation that tells the same story in a different cultural setting.

Additional Context: {style_hints}
"""

REMOVE_BRANDING_CLAUSE = "\n- REMOVE BRANDING: Identify and scrub any existing logos, text, or watermarks from the original image."
BRAND_COLOR_CLAUSE = "\n- BRANDING COLORS: Subtly adjust the color palette using {color} as a key accent color."
INSERT_LOGO_CLAUSE = "\n- INSERT LOGO: Composite the provided logo into the scene realistically."


def branding_clauses(config: LocalizationConfig) -> list[str]:
    clauses: list[str] = []
    if config.remove_branding:
        clauses.append(REMOVE_BRANDING_CLAUSE)
    if config.add_brand_color:
        clauses.append(BRAND_COLOR_CLAUSE.format(color=config.brand_color))
    if config.has_logo:
        clauses.append(INSERT_LOGO_CLAUSE)
    return clauses


def build_instruction(config: LocalizationConfig) -> str:
    return BASE_TEMPLATE.format(
        locale=config.target_locale,
        branding="".join(branding_clauses(config)),
        style_hints=config.style_hints,
    )
