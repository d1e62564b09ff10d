"""
Closet Matching Module

Matches garments observed in a photo against the user's closet inventory.

Scoring per candidate (after a hard category filter):
    score = 0.3 * category + 0.4 * color_similarity + 0.3 * text_similarity

The best candidate wins if its score reaches the match threshold (0.5).
Ties keep the first candidate in inventory order.

The matcher is pure and stateless: it only reads its inputs and allocates
new results, so it can be shared by concurrent callers.
"""
import logging
from typing import Dict, FrozenSet, Iterable, List, Mapping, Optional, Sequence, Set

from closet_vision.core.config import settings
from closet_vision.models.closet import CandidateScore, InventoryItem, MatchResult, ScannedItem
from closet_vision.services.inventory import InventoryStore

logger = logging.getLogger(__name__)

# Empirical constants, overridable per matcher instance
MATCH_THRESHOLD = 0.5
CATEGORY_WEIGHT = 0.3
COLOR_WEIGHT = 0.4
TEXT_WEIGHT = 0.3
COLOR_SYNONYM_SCORE = 0.8
COLOR_PARTIAL_SCORE = 0.6
COLOR_REASON_THRESHOLD = 0.7
TEXT_REASON_THRESHOLD = 0.3
MIN_TOKEN_LENGTH = 3
SCORE_PRECISION = 6

NO_CATEGORY_REASON = "no items in this category"
LOW_CONFIDENCE_REASON = "low confidence match"

# Category families: any two members of one family are the same category
CATEGORY_ALIASES: Dict[str, List[str]] = {
    "tops": [
        "top", "shirts", "shirt", "blouse", "blouses", "sweater", "sweaters",
        "hoodie", "hoodies", "t-shirt", "t-shirts", "tee", "tank top",
    ],
    "bottoms": [
        "bottom", "pants", "jeans", "shorts", "trousers", "skirt", "skirts", "leggings",
    ],
    "dresses": ["dress", "jumpsuit", "romper"],
    "outerwear": ["jacket", "jackets", "coat", "coats", "blazer", "cardigan"],
    "shoes": ["shoe", "footwear", "boot", "boots", "sneaker", "sneakers", "heel", "heels", "sandals"],
    "accessories": ["accessory", "bag", "bags", "belt", "hat", "scarf", "jewelry"],
}

# Color families (a color may belong to several, e.g. charcoal)
COLOR_SYNONYMS: Dict[str, List[str]] = {
    "black": ["dark", "charcoal", "ebony"],
    "white": ["ivory", "cream", "off-white"],
    "gray": ["grey", "silver", "charcoal"],
    "blue": ["navy", "cobalt", "azure", "denim"],
    "red": ["crimson", "burgundy", "wine", "maroon"],
    "green": ["olive", "forest", "emerald"],
    "yellow": ["gold", "mustard", "lemon"],
    "pink": ["rose", "blush", "fuchsia"],
    "purple": ["violet", "lavender", "plum"],
    "brown": ["tan", "camel", "chocolate", "beige"],
}


def _normalize(value: Optional[str]) -> str:
    return (value or "").lower().strip()


def _families(table: Mapping[str, Iterable[str]]) -> List[FrozenSet[str]]:
    return [frozenset([_normalize(main), *(_normalize(alias) for alias in aliases)])
            for main, aliases in table.items()]


_CATEGORY_FAMILIES = _families(CATEGORY_ALIASES)
_COLOR_FAMILIES = _families(COLOR_SYNONYMS)


def _share_family(a: str, b: str, families: Sequence[FrozenSet[str]]) -> bool:
    return any(a in family and b in family for family in families)


def categories_match(category1: str, category2: str, families=None) -> bool:
    """
    True if two categories are equal or aliases of each other.

    Symmetric by construction: membership of both in one family.
    """
    a, b = _normalize(category1), _normalize(category2)
    if a == b:
        return True
    return _share_family(a, b, _CATEGORY_FAMILIES if families is None else families)


def color_similarity(
    color1: Optional[str],
    color2: Optional[str],
    synonym_score: float = COLOR_SYNONYM_SCORE,
    partial_score: float = COLOR_PARTIAL_SCORE,
    families=None,
) -> float:
    """
    Fuzzy color similarity in [0, 1].

    1.0 exact (case-insensitive), synonym_score for one synonym group,
    partial_score if one name contains the other, 0.0 otherwise or if
    either color is missing (None or "").
    """
    if not color1 or not color2:
        return 0.0
    a, b = _normalize(color1), _normalize(color2)
    if a == b:
        return 1.0
    # Blank vs named color: "" would otherwise be a substring of everything
    if not a or not b:
        return 0.0
    if _share_family(a, b, _COLOR_FAMILIES if families is None else families):
        return synonym_score
    if a in b or b in a:
        return partial_score
    return 0.0


def tokenize(text: Optional[str], min_token_length: int = MIN_TOKEN_LENGTH) -> Set[str]:
    """Lowercase whitespace-separated words longer than min_token_length."""
    return {word for word in _normalize(text).split() if len(word) > min_token_length}


def text_similarity(text1: Optional[str], text2: Optional[str], min_token_length: int = MIN_TOKEN_LENGTH) -> float:
    """Keyword overlap |A & B| / max(|A|, |B|); 0 if either side has no tokens."""
    words1 = tokenize(text1, min_token_length)
    words2 = tokenize(text2, min_token_length)
    if not words1 or not words2:
        return 0.0
    return len(words1 & words2) / max(len(words1), len(words2))


def _join_text(name: Optional[str], description: Optional[str]) -> str:
    return f"{name or ''} {description or ''}"


class ClosetMatcher:
    """
    Match scanned garments to closet inventory items.

    Workflow per scanned item:
    1. Hard filter on category (with aliases)
    2. Weighted category/color/text score per candidate
    3. Keep the strictly highest score (first seen wins ties)
    4. Accept it only if score >= match_threshold
    """

    def __init__(
        self,
        match_threshold: float = MATCH_THRESHOLD,
        category_weight: float = CATEGORY_WEIGHT,
        color_weight: float = COLOR_WEIGHT,
        text_weight: float = TEXT_WEIGHT,
        color_synonym_score: float = COLOR_SYNONYM_SCORE,
        color_partial_score: float = COLOR_PARTIAL_SCORE,
        color_reason_threshold: float = COLOR_REASON_THRESHOLD,
        text_reason_threshold: float = TEXT_REASON_THRESHOLD,
        min_token_length: int = MIN_TOKEN_LENGTH,
        category_aliases: Optional[Mapping[str, Iterable[str]]] = None,
        color_synonyms: Optional[Mapping[str, Iterable[str]]] = None,
    ):
        self.match_threshold = match_threshold
        self.category_weight = category_weight
        self.color_weight = color_weight
        self.text_weight = text_weight
        self.color_synonym_score = color_synonym_score
        self.color_partial_score = color_partial_score
        self.color_reason_threshold = color_reason_threshold
        self.text_reason_threshold = text_reason_threshold
        self.min_token_length = min_token_length
        self._category_families = _families(category_aliases) if category_aliases else _CATEGORY_FAMILIES
        self._color_families = _families(color_synonyms) if color_synonyms else _COLOR_FAMILIES

    def categories_match(self, category1: str, category2: str) -> bool:
        return categories_match(category1, category2, self._category_families)

    def color_similarity(self, color1: Optional[str], color2: Optional[str]) -> float:
        return color_similarity(
            color1,
            color2,
            self.color_synonym_score,
            self.color_partial_score,
            self._color_families,
        )

    def text_similarity(self, text1: Optional[str], text2: Optional[str]) -> float:
        return text_similarity(text1, text2, self.min_token_length)

    def score_candidate(self, scanned: ScannedItem, candidate: InventoryItem) -> CandidateScore:
        """Score one candidate that already passed the category filter."""
        reasons = ["category match"]

        color_sim = self.color_similarity(scanned.color, candidate.color)
        if color_sim > self.color_reason_threshold:
            reasons.append("color match")

        text_sim = self.text_similarity(
            _join_text(scanned.name, scanned.description),
            _join_text(candidate.name, candidate.description),
        )
        if text_sim > self.text_reason_threshold:
            reasons.append("description match")

        # 0.3 + 0.3 * 2/3 must equal 0.5 exactly
        score = round(
            self.category_weight
            + self.color_weight * color_sim
            + self.text_weight * text_sim,
            SCORE_PRECISION,
        )

        return CandidateScore(
            item=candidate,
            score=score,
            color_similarity=color_sim,
            text_similarity=text_sim,
            reasons=tuple(reasons),
        )

    def _candidates(self, scanned: ScannedItem, inventory: Iterable[InventoryItem]) -> List[InventoryItem]:
        return [item for item in inventory if self.categories_match(scanned.category, item.category)]

    def rank_candidates(
        self,
        scanned: ScannedItem,
        inventory: Sequence[InventoryItem],
        limit: Optional[int] = None,
    ) -> List[CandidateScore]:
        """
        All category-compatible candidates, best first.

        The sort is stable, so equal scores keep inventory order.
        """
        scores = [self.score_candidate(scanned, item) for item in self._candidates(scanned, inventory)]
        scores.sort(key=lambda s: s.score, reverse=True)
        return scores[:limit] if limit is not None else scores

    def match_item(self, scanned: ScannedItem, inventory: Sequence[InventoryItem]) -> MatchResult:
        """Find the best closet match (or no match) for one scanned item."""
        candidates = self._candidates(scanned, inventory)

        if not candidates:
            logger.debug(f"No '{scanned.category}' items in closet for '{scanned.name}'")
            return MatchResult(
                scanned_item=scanned,
                matched_inventory_item=None,
                match_confidence=0.0,
                match_reason=NO_CATEGORY_REASON,
            )

        best: Optional[CandidateScore] = None
        for candidate in candidates:
            scored = self.score_candidate(scanned, candidate)
            if best is None or scored.score > best.score:
                best = scored

        if best.score >= self.match_threshold:
            logger.info(
                f"✅ Matched '{scanned.name}' -> '{best.item.name}' ({round(best.score * 100)}%)"
            )
            return MatchResult(
                scanned_item=scanned,
                matched_inventory_item=best.item,
                match_confidence=best.score,
                match_reason=", ".join(best.reasons),
            )

        logger.info(f"No confident match for '{scanned.name}' (best: {round(best.score * 100)}%)")
        return MatchResult(
            scanned_item=scanned,
            matched_inventory_item=None,
            match_confidence=best.score,
            match_reason=LOW_CONFIDENCE_REASON,
        )

    def match_all(
        self,
        scanned_items: Sequence[ScannedItem],
        inventory: Sequence[InventoryItem],
    ) -> List[MatchResult]:
        """
        Match every scanned item against the inventory.

        Returns:
            One MatchResult per scanned item, in input order
        """
        inventory = list(inventory)
        logger.info(f"🔍 Matching {len(scanned_items)} scanned items to {len(inventory)} closet items")
        return [self.match_item(scanned, inventory) for scanned in scanned_items]

    def match_inventory(
        self,
        scanned_items: Sequence[ScannedItem],
        store: InventoryStore,
    ) -> List[MatchResult]:
        """Match against a snapshot read once from an inventory store."""
        return self.match_all(scanned_items, store.list_items())


def create_closet_matcher() -> ClosetMatcher:
    """
    Factory function to create a closet matcher from settings.

    Returns:
        ClosetMatcher instance
    """
    return ClosetMatcher(
        match_threshold=settings.MATCH_THRESHOLD,
        category_weight=settings.MATCH_CATEGORY_WEIGHT,
        color_weight=settings.MATCH_COLOR_WEIGHT,
        text_weight=settings.MATCH_TEXT_WEIGHT,
        color_synonym_score=settings.COLOR_SYNONYM_SCORE,
        color_partial_score=settings.COLOR_PARTIAL_SCORE,
        color_reason_threshold=settings.COLOR_REASON_THRESHOLD,
        text_reason_threshold=settings.TEXT_REASON_THRESHOLD,
        min_token_length=settings.MIN_TOKEN_LENGTH,
    )
