"""Prompt template for structural analysis of a room photo."""

from ..models.schemas import RoomType


def room_analysis_prompt(room_type: RoomType | None = None) -> str:
    """Return the prompt for analysing a room photo before generation.

    Use with `call_vision(prompt, [image])`. The JSON it asks for validates
    against `RoomAnalysis`.
    """
    hint = ""
    if room_type and room_type != RoomType.OTHER:
        hint = f"The user has indicated this is a {room_type.value.replace('_', ' ')}.\n\n"

    return f"""\
You are analyzing a room photo for an AI renovation visualization system. Your analysis will be used to construct prompts for image generation, so accuracy is critical.

{hint}Return ONLY valid JSON (no markdown fences, no commentary) matching this schema:

{{
  "room_type": "kitchen|bathroom|living_room|bedroom|basement|dining_room|exterior",
  "current_condition": "excellent|good|dated|needs_renovation",
  "structural_elements": ["string - elements that MUST be preserved, e.g. 'window on back wall'"],
  "identified_fixtures": ["string - e.g. 'island with seating', 'corner sink'"],
  "layout_type": "string - e.g. galley, L-shaped, open concept, ensuite",
  "lighting_conditions": "string - natural light direction, time of day, artificial sources",
  "perspective_notes": "string - where the photo is taken from, height, focal length",
  "preservation_constraints": ["string - what CANNOT change, e.g. plumbing rough-in locations"],
  "confidence_score": "number 0-1",
  "current_style": "string or null",
  "estimated_dimensions": "string or null",
  "potential_focal_points": ["string"],
  "wall_count": "integer 0-6 or null",
  "wall_dimensions": [
    {{"wall": "string", "estimated_length": "string", "has_window": "boolean", "has_door": "boolean"}}
  ],
  "estimated_ceiling_height": "string or null",
  "openings": [
    {{"type": "window|door|archway", "wall": "string", "approximate_size": "string", "approximate_position": "string"}}
  ]
}}

## What to look for
- Structural elements: walls (note any that appear load-bearing), windows, doors, ceiling features, columns.
- Fixtures: counters, islands, vanities, built-in appliances, sinks, tubs, showers, fireplaces, flooring.
- Lighting: where windows cast light from, shadow patterns that should be maintained.
- Perspective: doorway, corner or center shot; standing, elevated or low angle; wide or normal lens.
- Preservation constraints: plumbing and electrical locations, window and door positions, ceiling height limits.

Be specific and technical. This analysis directly impacts visualization quality.
"""
