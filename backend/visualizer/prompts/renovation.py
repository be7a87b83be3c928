"""Structured renovation prompt for the image generation model.

The prompt has six fixed parts (scene, structural preservation, materials,
lighting, perspective, output quality) followed by optional sections for user
preferences, design intent, conditioning references, refinement guidance and
per-concept variation, then a closing instruction.
"""

from ..models.pipeline import GenerationConfig
from ..models.schemas import DesignStyle, RoomType

STYLE_DETAILS: dict[DesignStyle, dict] = {
    DesignStyle.MODERN: {
        "narrative": (
            "A sophisticated modern aesthetic featuring clean horizontal lines, open floor plans, "
            "and a seamless blend of indoor-outdoor living. The space emphasizes geometric precision "
            "with flat surfaces and minimal ornamentation."
        ),
        "materials": ["polished concrete", "tempered glass", "brushed stainless steel", "engineered quartz", "porcelain tiles"],
        "colors": ["crisp white", "warm gray", "charcoal", "black accents", "occasional navy or forest green"],
        "finishes": ["matte lacquer", "high-gloss paint", "brushed metal", "honed stone"],
        "fixtures": ["frameless cabinets", "handleless drawers", "integrated appliances", "waterfall countertops"],
        "lighting": "recessed LED lighting, linear pendant fixtures, and strategic accent lighting",
    },
    DesignStyle.TRADITIONAL: {
        "narrative": (
            "A timeless traditional aesthetic rooted in classical European design principles. The space "
            "features elegant symmetry, rich woodwork, and refined details that create a sense of "
            "established comfort and sophistication."
        ),
        "materials": ["solid hardwood", "natural stone", "ceramic tile", "crown molding", "wainscoting panels"],
        "colors": ["warm cream", "rich burgundy", "forest green", "navy blue", "warm gold accents"],
        "finishes": ["stained wood", "glazed ceramics", "polished brass", "antique bronze"],
        "fixtures": ["raised panel cabinets", "decorative hardware", "apron-front sinks", "ornate faucets"],
        "lighting": "crystal chandeliers, brass sconces, and under-cabinet task lighting",
    },
    DesignStyle.FARMHOUSE: {
        "narrative": (
            "A warm farmhouse aesthetic that blends rustic charm with modern comfort. The space celebrates "
            "natural imperfections, handcrafted elements, and a connection to simpler times while "
            "maintaining functional practicality."
        ),
        "materials": ["reclaimed wood", "shiplap planks", "subway tile", "butcher block", "cast iron"],
        "colors": ["antique white", "soft sage green", "barn red accents", "natural wood tones", "muted blue"],
        "finishes": ["distressed wood", "matte paint", "oil-rubbed bronze", "galvanized metal"],
        "fixtures": ["farmhouse sinks", "open shelving", "barn door hardware", "vintage-style faucets"],
        "lighting": "mason jar pendants, wrought iron chandeliers, and Edison bulb fixtures",
    },
    DesignStyle.INDUSTRIAL: {
        "narrative": (
            "A bold industrial aesthetic inspired by converted warehouses and urban lofts. The space "
            "proudly exposes structural elements and celebrates raw materials, creating an edgy yet "
            "sophisticated atmosphere."
        ),
        "materials": ["exposed brick", "raw concrete", "blackened steel", "reclaimed timber", "weathered metal"],
        "colors": ["charcoal gray", "rust orange accents", "matte black", "warm wood tones", "cement gray"],
        "finishes": ["raw steel", "brushed concrete", "oxidized metal", "sealed brick"],
        "fixtures": ["metal-frame cabinets", "pipe shelving", "commercial-style faucets", "wire mesh accents"],
        "lighting": "exposed Edison bulbs, metal cage pendants, and track lighting on exposed conduit",
    },
    DesignStyle.MINIMALIST: {
        "narrative": (
            "A serene minimalist aesthetic that elevates simplicity to an art form. Every element serves "
            "a purpose, with clutter-free surfaces, hidden storage, and a focus on quality over quantity "
            "creating a calming sanctuary."
        ),
        "materials": ["white oak", "seamless quartz", "frosted glass", "ultra-matte surfaces", "invisible hinges"],
        "colors": ["pure white", "warm greige", "soft black", "natural wood", "single accent color"],
        "finishes": ["ultra-matte paint", "satin wood", "finger-pull cabinets", "seamless transitions"],
        "fixtures": ["handleless cabinets", "integrated appliances", "wall-mounted fixtures", "hidden storage"],
        "lighting": "concealed LED strips, minimal downlights, and large windows for natural light",
    },
    DesignStyle.CONTEMPORARY: {
        "narrative": (
            "A dynamic contemporary aesthetic that embraces current design trends while maintaining "
            "timeless appeal. The space features bold statements, artistic elements, and a curated mix "
            "of textures and materials."
        ),
        "materials": ["mixed metals", "textured tiles", "statement stone", "velvet fabrics", "sculptural elements"],
        "colors": ["bold jewel tones", "dramatic black", "warm metallics", "deep teal", "terracotta accents"],
        "finishes": ["high-gloss lacquer", "hammered metal", "textured wallcovering", "mixed sheens"],
        "fixtures": ["sculptural hardware", "statement faucets", "artistic light fixtures", "custom built-ins"],
        "lighting": "statement pendant clusters, sculptural chandeliers, and dramatic accent lighting",
    },
}

ROOM_DETAILS: dict[RoomType, dict] = {
    RoomType.KITCHEN: {
        "primary": ["cabinet doors and drawer fronts", "countertop material and edge profile", "backsplash tile pattern and grout color", "lighting fixtures above island and work areas"],
        "secondary": ["hardware and pulls", "faucet style", "open shelving content", "decorative accessories"],
        "preserve": ["cabinet box locations", "appliance positions", "window placement", "ceiling height"],
    },
    RoomType.BATHROOM: {
        "primary": ["vanity cabinet and countertop", "wall and floor tile pattern", "shower enclosure and fixtures", "mirror and lighting"],
        "secondary": ["hardware and accessories", "towel storage", "decorative elements", "plant life"],
        "preserve": ["plumbing fixture locations", "window position", "shower/tub footprint", "door swing"],
    },
    RoomType.LIVING_ROOM: {
        "primary": ["seating arrangement and upholstery", "accent wall treatment", "area rug pattern and placement", "window treatments"],
        "secondary": ["coffee table styling", "artwork and wall decor", "throw pillows and textiles", "plants and accessories"],
        "preserve": ["room dimensions", "window locations", "fireplace position", "ceiling features"],
    },
    RoomType.BEDROOM: {
        "primary": ["headboard and bed frame style", "bedding and linens", "nightstand and dresser design", "window treatments"],
        "secondary": ["accent lighting", "artwork", "throw pillows", "decorative accessories"],
        "preserve": ["room layout", "closet doors", "window positions", "ceiling height"],
    },
    RoomType.BASEMENT: {
        "primary": ["flooring material and pattern", "ceiling treatment", "lighting strategy", "wall finish"],
        "secondary": ["built-in storage", "entertainment area", "seating arrangement", "accent decor"],
        "preserve": ["ceiling height", "column locations", "window wells", "stairway position"],
    },
    RoomType.DINING_ROOM: {
        "primary": ["dining table and chairs", "chandelier or pendant fixture", "wall treatment", "sideboard or buffet"],
        "secondary": ["table centerpiece", "wall art", "window treatments", "decorative accessories"],
        "preserve": ["room dimensions", "window placement", "door locations", "ceiling height"],
    },
    RoomType.EXTERIOR: {
        "primary": ["siding and facade treatment", "front door and entry", "windows and trim", "roofing materials"],
        "secondary": ["landscaping", "lighting fixtures", "deck or patio", "railings and fencing"],
        "preserve": ["building footprint", "roof line", "window positions", "structural elements"],
    },
}

VARIATION_HINTS = [
    "Explore a warmer color temperature while maintaining the core style. Emphasize cozy, inviting textures.",
    "Feature natural textures and organic materials prominently. Bring in subtle biophilic elements.",
    "Take a more streamlined approach with extra emphasis on clean lines and negative space.",
    "Incorporate subtle accent colors and decorative details that add personality without overwhelming.",
]


def _bullets(items) -> str:
    return "\n".join(f"- {item}" for item in items)


def _style_details(style: DesignStyle) -> dict:
    return STYLE_DETAILS.get(style, STYLE_DETAILS[DesignStyle.CONTEMPORARY])


def _room_details(room_type: RoomType) -> dict:
    return ROOM_DETAILS.get(room_type, ROOM_DETAILS[RoomType.LIVING_ROOM])


def _scene_section(config: GenerationConfig, style: dict, room: dict) -> str:
    return f"""\
=== SCENE DESCRIPTION ===
Transform this {config.room_label} into a {config.style_label} design renovation.
{style["narrative"]}

The renovation should feel like a professional interior design transformation, maintaining the soul of the original space while elevating it to {config.style_label} sophistication. Focus on: {", ".join(room["primary"])}"""


def _structure_section(config: GenerationConfig, room: dict) -> str:
    section = """\
=== STRUCTURAL PRESERVATION (CRITICAL) ===
ABSOLUTE REQUIREMENTS - These MUST remain UNCHANGED:
- Room dimensions, walls, and ceiling height
- All window and door positions
- Camera angle and perspective from original photo
- Floor plan and traffic flow patterns"""

    analysis = config.photo_analysis or {}
    if analysis.get("structural_elements"):
        section += "\n\nIdentified Structural Elements to Preserve:\n" + _bullets(analysis["structural_elements"])
    if analysis.get("preservation_constraints"):
        section += "\n\nPhoto Analysis Preservation Notes:\n" + _bullets(analysis["preservation_constraints"])

    section += "\n\nRoom-Specific Preservation Priority:\n" + _bullets(room["preserve"])
    return section


def _materials_section(config: GenerationConfig, style: dict) -> str:
    section = f"""\
=== MATERIAL & FINISH SPECIFICATIONS ===
Style: {config.style_label.upper()}

Primary Materials:
{_bullets(style["materials"])}

Color Palette:
{_bullets(style["colors"])}

Finish Types:
{_bullets(style["finishes"])}

Fixture Styles:
{_bullets(style["fixtures"])}"""

    intent = config.design_intent
    if intent and intent.material_preferences:
        section += "\n\nUser Material Preferences:\n" + _bullets(intent.material_preferences)
    return section


def _lighting_section(config: GenerationConfig, style: dict) -> str:
    section = f"=== LIGHTING INSTRUCTIONS ===\n{style['lighting']}"
    lighting = (config.photo_analysis or {}).get("lighting_conditions")
    if lighting:
        section += (
            f"\n\nOriginal Photo Lighting Analysis:\n{lighting}\n"
            "IMPORTANT: Match the direction, intensity, and color temperature of the original lighting."
        )
    else:
        section += (
            "\n\nMatch the original photo's natural lighting direction and intensity.\n"
            "Preserve existing shadow patterns and light sources."
        )
    return section


def _perspective_section(config: GenerationConfig) -> str:
    section = (
        "=== PERSPECTIVE INSTRUCTIONS ===\n"
        "Maintain the EXACT camera position and viewing angle from the original photograph."
    )
    notes = (config.photo_analysis or {}).get("perspective_notes")
    if notes:
        section += f"\n\nPhoto Perspective Analysis:\n{notes}"
    section += (
        "\n\nThe viewer should feel they are standing in the same position, seeing the same room "
        "after a professional renovation - not a different room entirely."
    )
    return section


_QUALITY_SECTION = """\
=== OUTPUT QUALITY REQUIREMENTS ===
- Photorealistic rendering quality suitable for client presentation
- 2048x2048 resolution output
- Professional interior photography aesthetic
- Crisp details on materials and textures
- Natural color reproduction
- No artifacts, distortions, or AI-typical inconsistencies
- Publication-ready image quality"""


def conditioning_section(config: GenerationConfig) -> str | None:
    """Describe the attached reference images, in the order they are sent."""
    if not (config.has_depth_map or config.has_edge_map):
        return None

    lines = [
        "=== STRUCTURAL REFERENCE IMAGES ===",
        "Image 1 is the original room photograph. Transform it.",
    ]
    position = 2
    if config.has_depth_map:
        depth_range = config.depth_range
        span = f" (near {depth_range.min_m:.1f}m, far {depth_range.max_m:.1f}m)" if depth_range else ""
        lines.append(
            f"Image {position} is a depth map of the same room{span}. Brighter is closer. "
            "Keep every surface at the depth it shows."
        )
        position += 1
    if config.has_edge_map:
        lines.append(
            f"Image {position} is an edge map of the same room. The white lines are walls, openings "
            "and fixture outlines that must stay in place."
        )
    lines.append(
        f"Follow these references with structure strength {config.structure_strength:.2f} "
        f"and apply the new style at strength {config.style_strength:.2f}."
    )
    return "\n".join(lines)


def build_renovation_prompt(config: GenerationConfig, variation_index: int = 0) -> str:
    """Build the full prompt for one concept. Same inputs always give the same text."""
    style = _style_details(config.style)
    room = _room_details(config.room_type)

    parts = [
        _scene_section(config, style, room),
        _structure_section(config, room),
        _materials_section(config, style),
        _lighting_section(config, style),
        _perspective_section(config),
        _QUALITY_SECTION,
    ]

    if config.constraints and config.constraints.strip():
        parts.append(f"=== USER PREFERENCES ===\n{config.constraints}")

    intent = config.design_intent
    if intent:
        section = "=== DESIGN INTENT (from consultation) ==="
        if intent.desired_changes:
            section += "\n\nDesired Changes:\n" + _bullets(intent.desired_changes)
        if intent.constraints_to_preserve:
            section += "\n\nElements to Preserve:\n" + _bullets(intent.constraints_to_preserve)
        parts.append(section)

    if config.voice_preferences_summary:
        parts.append(f"=== HOMEOWNER VOICE NOTES ===\n{config.voice_preferences_summary}")

    conditioning = conditioning_section(config)
    if conditioning:
        parts.append(conditioning)

    if config.refinement_guidance:
        parts.append(f"=== REFINEMENT ===\n{config.refinement_guidance}")

    if variation_index > 0:
        hint = VARIATION_HINTS[variation_index % len(VARIATION_HINTS)]
        parts.append(f"=== VARIATION {variation_index + 1} ===\n{hint}")

    parts.append(
        "=== GENERATE ===\n"
        f"Create a single photorealistic visualization showing this {config.room_label} "
        f"after a professional {config.style_label} renovation. Output an image."
    )
    return "\n\n".join(parts)


def refinement_guidance(score: float, issues: list[str] | tuple[str, ...] = ()) -> str:
    text = (
        "CRITICAL REFINEMENT: The previous generation did not adequately preserve room structure. "
        f"Validation score was {score:.2f}, structural deviation detected. "
        "Pay EXTRA attention to wall positions, window/door locations, and overall room geometry."
    )
    if issues:
        text += "\n\nIssues found in the previous attempt:\n" + _bullets(issues)
    return text


def build_concept_description(config: GenerationConfig, index: int) -> str:
    """Short human-readable caption for concept `index` (zero-based)."""
    style = config.style_label
    description = f"{style[:1].upper()}{style[1:]} {config.room_label} design - Concept {index + 1}"
    intent = config.design_intent
    if intent and intent.desired_changes:
        description += " featuring " + " and ".join(intent.desired_changes[:2])
    return description
