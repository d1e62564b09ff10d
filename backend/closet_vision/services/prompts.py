"""
Task prompts sent to the vision service.
"""
from typing import Optional

from closet_vision.models.detection import PhotoHint

DETECTION_PROMPT = """Analyze this image and detect all individual clothing items. This includes BOTH:
1. Flat-lay photos with items laid out separately
2. Outfit photos where a person is wearing multiple garments

DETECTION RULES:
DETECT separate items when you see:
- Person wearing shirt + pants/skirt/shorts (split into 2+ items)
- Person wearing outfit with shoes visible (include shoes as separate item)
- Person wearing accessories (bags, hats, jewelry - separate items)
- Flat-lay photo with multiple items laid out
- Items photographed side-by-side

TREAT AS SINGLE ITEM only when:
- One-piece garment (dress, jumpsuit, romper) with NO other visible items
- Only outerwear visible (coat covering everything)
- Single item only (just a shirt, just shoes, etc.)

BOUNDING BOX ACCURACY:
Each item's bounding box MUST frame THAT EXACT item. Identify items by spatial position:
- TOP AREA (y: 0.0-0.35): upper garment (shirt, blouse, tank top)
- MIDDLE AREA (y: 0.3-0.65): lower garment (skirt, pants, shorts)
- BOTTOM AREA (y: 0.6-1.0): footwear
- TOPS: frame neckline to bottom hem
- BOTTOMS: frame waistline to hem
- SHOES: frame the shoe only, not the leg

CATEGORY: one of tops|pants|dresses|shoes|accessories|outerwear|sweaters|other.
Keep NAME descriptive (e.g., "White Crop Top", "White Mini Skirt").

Return ONLY valid JSON:
{
  "hasMultipleItems": true,
  "items": [
    {
      "name": "White Crop Top",
      "category": "tops",
      "boundingBox": {"x": 0.2, "y": 0.1, "width": 0.6, "height": 0.25},
      "confidence": 0.95
    }
  ]
}
All boundingBox values are normalized to 0-1 (x, y = top-left corner).
Return ONLY the JSON object, no additional text."""

_HINTS = {
    PhotoHint.FLAT_LAY: "HINT: This is a flat-lay photo; items are laid out separately, not worn.",
    PhotoHint.WORN_OUTFIT: (
        "HINT: This is a photo of a person wearing an outfit; report each visible "
        "garment as a separate item unless it is a single one-piece garment."
    ),
}

OUTFIT_SCAN_PROMPT = """Analyze this outfit photo and identify ALL visible clothing items the person is wearing.

Identify EVERY garment visible:
- Tops (shirts, t-shirts, blouses, sweaters, hoodies, jackets)
- Bottoms (pants, jeans, skirts, shorts, leggings)
- Dresses (if wearing a dress instead of separate top/bottom)
- Outerwear (coats, jackets, blazers, cardigans worn over other clothes)
- Shoes (sneakers, boots, heels, sandals, dress shoes)
- Accessories (bags, belts, hats, scarves, jewelry - if prominently visible)

For EACH item provide:
1. name: descriptive name (e.g., "White Cotton T-Shirt")
2. category: one of tops, bottoms, dresses, outerwear, shoes, accessories
3. color: primary color (e.g., "black", "blue")
4. description: material, style and key features (1-2 sentences)
5. confidence: 0.0 to 1.0

RULES:
- A dress is category "dresses" (not separate top/bottom)
- A jacket or cardigan OVER another top is listed as a separate item
- Only include items you can actually see

Return ONLY valid JSON:
{
  "items": [
    {
      "name": "White Cotton T-Shirt",
      "category": "tops",
      "color": "white",
      "description": "Plain white cotton crew neck t-shirt with short sleeves",
      "confidence": 0.95
    }
  ]
}
NO additional text before or after the JSON."""

CROP_VALIDATION_PROMPT = """Analyze this cropped clothing image and identify what clothing item is visible.

Expected item: {expected_name}
Expected category: {expected_category}

1. What clothing item do you see in this image?
2. Does it match the expected item ({expected_name})?
3. Confidence score (0.0-1.0)
4. Any issues with the crop?

Respond ONLY with valid JSON:
{{
  "detectedItem": "description of what you see",
  "matchesExpected": true,
  "confidence": 0.95,
  "issues": ["e.g. 'partial garment only', 'too much background'"]
}}
NO additional text, ONLY JSON."""


def build_detection_prompt(hint: Optional[PhotoHint] = None) -> str:
    """Detection prompt, optionally narrowed to one photo regime."""
    if hint is None:
        return DETECTION_PROMPT
    return f"{DETECTION_PROMPT}\n\n{_HINTS[PhotoHint(hint)]}"


def build_crop_validation_prompt(expected_name: str, expected_category: str) -> str:
    return CROP_VALIDATION_PROMPT.format(
        expected_name=expected_name,
        expected_category=expected_category,
    )
