"""Prompt for scoring how well a generated concept preserves the original room."""


def structure_validation_prompt() -> str:
    """Return the comparison prompt.

    Send it with two images in this order: the original photo, then the
    generated concept.
    """
    return """\
Compare these two images: the original room photo and an AI-generated renovation visualization.

Your task is to validate that the generated image correctly PRESERVES the original room's structure.

Check for:
1. ROOM DIMENSIONS: Same wall positions, ceiling height, floor area
2. WINDOWS & DOORS: Same positions, sizes, and orientations
3. PERSPECTIVE: Same camera angle, focal length, viewing position
4. LIGHTING DIRECTION: Light comes from the same direction/sources
5. ARCHITECTURAL FEATURES: Columns, beams, built-ins in same positions

The generated image SHOULD change finishes, colors, fixtures, and decor.
The generated image should NOT change room shape, window positions, or camera angle.

Return ONLY valid JSON (no markdown fences, no commentary) matching this schema:

{
  "structure_preserved": "boolean",
  "windows_doors_intact": "boolean",
  "perspective_matches": "boolean",
  "lighting_consistent": "boolean",
  "overall_score": "number from 0 (completely different room) to 1 (perfect preservation)",
  "issues": ["string - a specific place where the structure was NOT preserved"],
  "recommendations": ["string - how the next attempt could preserve it better"]
}
"""
