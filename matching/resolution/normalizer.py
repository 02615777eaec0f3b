"""
Text normalization for catalog item names.

Turns free-text line items ("BNLS CHKN BRST 10LB") and catalog display names
("Chicken Breast Boneless 10 lb") into one comparable form plus a token list.

Steps, in order (later steps assume the earlier ones ran):
1. Lowercase and trim
2. Remove brand/vendor qualifiers
3. Canonicalize units and expand item abbreviations
4. Strip punctuation (keeping internal hyphens and decimal points), collapse whitespace
5. Tokenize, dropping short tokens and stopwords

normalize() is total and idempotent: feeding normalized_name back in returns
the same result.
"""

import re
from decimal import Decimal, InvalidOperation
from pathlib import Path
from types import MappingProxyType
from typing import Iterable, Mapping, NamedTuple, Optional

import yaml

from config.logging import get_logger
from matching.resolution.errors import ConfigurationInvalid

logger = get_logger("normalizer")


# Qualifiers that carry no discriminating signal between catalog items
BRAND_QUALIFIERS = (
    "sysco", "us foods", "usf", "gordon food service", "gfs", "pfg",
    "performance foodservice", "restaurant depot", "kirkland", "great value",
    "premium", "choice", "select", "classic", "imperial", "reliance",
    "supreme", "fancy", "extra fancy", "grade a",
)

# Canonical unit words; keys are matched longest first
UNIT_MAP = MappingProxyType({
    "pounds": "pound", "lbs": "pound", "lb": "pound",
    "ounces": "ounce", "ozs": "ounce", "oz": "ounce",
    "gallons": "gallon", "gals": "gallon", "gal": "gallon",
    "quarts": "quart", "qts": "quart", "qt": "quart",
    "pints": "pint", "pts": "pint", "pt": "pint",
    "liters": "liter", "litres": "liter", "litre": "liter", "ltr": "liter",
    "milliliters": "milliliter", "millilitres": "milliliter", "ml": "milliliter",
    "kilograms": "kilogram", "kilos": "kilogram", "kilo": "kilogram",
    "kgs": "kilogram", "kg": "kilogram",
    "grams": "gram", "gm": "gram", "gr": "gram",
    "dozens": "dozen", "doz": "dozen", "dz": "dozen",
    "counts": "count", "cnt": "count", "ct": "count",
    "eaches": "each", "ea": "each",
    "pieces": "each", "piece": "each", "pcs": "each", "pc": "each",
    "cases": "case", "cs": "case",
})

# Units that describe a magnitude worth comparing as a size
MEASURE_UNITS = frozenset({
    "pound", "ounce", "gallon", "quart", "pint", "liter", "milliliter",
    "kilogram", "gram", "dozen", "count",
})

# Distributor shorthand commonly seen on invoices
ABBREVIATIONS = MappingProxyType({
    "bnls": "boneless", "bnl": "boneless",
    "chkn": "chicken", "chk": "chicken", "ckn": "chicken",
    "brst": "breast", "bnlss": "boneless",
    "grnd": "ground", "grd": "ground",
    "bf": "beef", "prk": "pork", "tky": "turkey", "trky": "turkey",
    "frz": "frozen", "frzn": "frozen",
    "whl": "whole", "slcd": "sliced", "slc": "sliced",
    "shrd": "shredded", "chpd": "chopped", "dcd": "diced",
    "tom": "tomato", "tomatos": "tomato",
    "veg": "vegetable", "chs": "cheese", "mozz": "mozzarella",
    "ched": "cheddar", "parm": "parmesan", "sce": "sauce",
    "org": "organic", "nat": "natural",
})

STOPWORDS = frozenset({
    # generic
    "the", "and", "of", "with", "for", "in", "on", "an", "to", "per",
    "or", "by", "from", "at", "no", "not",
    # domain jargon
    "boneless", "skinless", "frozen", "fresh", "bulk", "pack", "packed",
    "pk", "bag", "box", "tray", "approx", "avg", "random", "weight",
    "rw", "iqf", "ref", "item", "assorted",
})

# Boundaries over Unicode letters and digits; "_" separates words
_LETTER_BEFORE = r"(?<![^\W\d_])"
_ALNUM_BEFORE = r"(?<![^\W_])"
_ALNUM_AFTER = r"(?![^\W_])"
_PHRASE_GAP = r"[\W_]+"

_NON_WORD_RE = re.compile(r"[^\w\s.\-]|_")
_LOOSE_DOT_RE = re.compile(r"(?<![0-9])\.|\.(?![0-9])")
_LOOSE_HYPHEN_RE = re.compile(r"(?<!\w)-|-(?!\w)")
_WHITESPACE_RE = re.compile(r"\s+")
_TOKEN_SPLIT_RE = re.compile(r"[\s\-]+")
_KEY_RE = re.compile(r"[a-z0-9]+")


class NormalizedText(NamedTuple):
    """Comparable form of a raw name."""
    normalized_name: str
    tokens: tuple[str, ...]


def _alternation(words: Iterable[str]) -> str:
    """Regex alternation, longest first so 'lbs' wins over 'lb'."""
    ordered = sorted({w.lower().strip() for w in words if w and w.strip()}, key=lambda w: (-len(w), w))
    return "|".join(re.escape(w) for w in ordered)


def _phrase_alternation(phrases: Iterable[str]) -> str:
    """Like _alternation, but words of a phrase may be split by any run of non-word characters."""
    ordered = sorted(
        {" ".join(p.lower().split()) for p in phrases if p and p.strip()},
        key=lambda p: (-len(p), p),
    )
    return "|".join(
        _PHRASE_GAP.join(re.escape(word) for word in phrase.split(" "))
        for phrase in ordered
    )


class TextNormalizer:
    """
    Canonicalizes raw item names into comparable text and tokens.

    Vocabulary tables are copied at construction and never mutated, so one
    instance can be shared by every matcher thread.

    Usage:
        normalizer = TextNormalizer()
        text = normalizer.normalize("BNLS CHKN BRST 10LB")
        # text.normalized_name == "boneless chicken breast 10 pound"
        # text.tokens == ("chicken", "breast", "10", "pound")
    """

    def __init__(
        self,
        brand_qualifiers: Iterable[str] = BRAND_QUALIFIERS,
        unit_map: Mapping[str, str] = UNIT_MAP,
        abbreviations: Mapping[str, str] = ABBREVIATIONS,
        stopwords: Iterable[str] = STOPWORDS,
    ):
        self.brand_qualifiers = tuple(brand_qualifiers)
        self.unit_map = MappingProxyType(
            {k.lower().strip(): " ".join(v.lower().split()) for k, v in unit_map.items()}
        )
        self.abbreviations = MappingProxyType(
            {k.lower().strip(): " ".join(v.lower().split()) for k, v in abbreviations.items()}
        )
        self.stopwords = frozenset(w.lower() for w in stopwords)
        self._check_vocabulary()

        brands = _phrase_alternation(self.brand_qualifiers)
        self._brand_re = re.compile(rf"{_ALNUM_BEFORE}(?:{brands}){_ALNUM_AFTER}") if brands else None

        # Units may be glued to a number ("10lb"), abbreviations may not
        replacements = {**self.abbreviations, **self.unit_map}
        self._replacements = MappingProxyType(replacements)
        self._unit_re = re.compile(
            rf"{_LETTER_BEFORE}({_alternation(self.unit_map)}){_ALNUM_AFTER}"
        ) if self.unit_map else None
        self._abbrev_re = re.compile(
            rf"{_ALNUM_BEFORE}({_alternation(self.abbreviations)}){_ALNUM_AFTER}"
        ) if self.abbreviations else None

        measure = _alternation(v for v in set(self.unit_map.values()) if v in MEASURE_UNITS)
        self._size_re = re.compile(
            rf"(?<![a-z0-9.])([0-9]+(?:\.[0-9]+)?)[\s\-]*(?:{measure}){_ALNUM_AFTER}"
        ) if measure else None

    @classmethod
    def from_settings(cls, settings) -> "TextNormalizer":
        """Build a normalizer, merging VOCABULARY_FILE over the defaults if set."""
        if not settings.VOCABULARY_FILE:
            return cls()
        return cls.from_vocabulary_file(settings.VOCABULARY_FILE)

    @classmethod
    def from_vocabulary_file(cls, path: str) -> "TextNormalizer":
        """
        Load extra vocabulary from YAML and extend the default tables.

        Recognized keys: brand_qualifiers (list), stopwords (list),
        abbreviations (mapping), units (mapping).
        """
        vocab_path = Path(path)
        try:
            with open(vocab_path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ConfigurationInvalid(f"Cannot load vocabulary file {path}: {e}") from e

        if not isinstance(data, dict):
            raise ConfigurationInvalid(f"Vocabulary file {path} must contain a mapping")

        expected = {
            "brand_qualifiers": list, "stopwords": list,
            "abbreviations": dict, "units": dict,
        }
        for key, kind in expected.items():
            if data.get(key) is not None and not isinstance(data[key], kind):
                raise ConfigurationInvalid(
                    f"'{key}' in {path} must be a {kind.__name__}"
                )

        try:
            normalizer = cls(
                brand_qualifiers=BRAND_QUALIFIERS + tuple(data.get("brand_qualifiers") or ()),
                unit_map={**UNIT_MAP, **(data.get("units") or {})},
                abbreviations={**ABBREVIATIONS, **(data.get("abbreviations") or {})},
                stopwords=STOPWORDS | frozenset(data.get("stopwords") or ()),
            )
        except (TypeError, AttributeError) as e:
            raise ConfigurationInvalid(f"Malformed vocabulary file {path}: {e}") from e

        logger.info(f"Loaded normalizer vocabulary from {vocab_path}")
        return normalizer

    def normalize(self, raw: Optional[str]) -> NormalizedText:
        """Normalize a raw name. Never raises; garbage in gives empty out."""
        if not raw:
            return NormalizedText("", ())

        # 1. Lowercase and trim
        text = str(raw).lower().strip()

        # 2. Brand/vendor qualifiers
        if self._brand_re is not None:
            text = self._strip_brands(text)

        # 3. Units, then abbreviations
        if self._unit_re is not None:
            text = self._unit_re.sub(self._replace, text)
        if self._abbrev_re is not None:
            text = self._abbrev_re.sub(self._replace, text)

        # 4. Punctuation and whitespace
        text = _NON_WORD_RE.sub(" ", text)
        text = _LOOSE_DOT_RE.sub(" ", text)
        text = _LOOSE_HYPHEN_RE.sub(" ", text)
        normalized_name = _WHITESPACE_RE.sub(" ", text).strip()

        # 5. Tokens
        return NormalizedText(normalized_name, self.tokenize(normalized_name))

    def tokenize(self, normalized_name: str) -> tuple[str, ...]:
        """Split a normalized name into meaningful tokens."""
        return tuple(
            token for token in _TOKEN_SPLIT_RE.split(normalized_name)
            if len(token) >= 2 and token not in self.stopwords
        )

    def extract_size(self, normalized_name: str) -> Optional[Decimal]:
        """
        Pull the first magnitude attached to a measure unit.

        "chicken breast 10 pound" -> Decimal("10")
        """
        if not normalized_name or self._size_re is None:
            return None
        match = self._size_re.search(normalized_name)
        if not match:
            return None
        try:
            return Decimal(match.group(1))
        except InvalidOperation:
            return None

    def _strip_brands(self, text: str) -> str:
        """Remove brand phrases until none is left; a removal can join its neighbours into a new phrase."""
        while True:
            stripped = _WHITESPACE_RE.sub(" ", self._brand_re.sub(" ", text))
            if stripped == text:
                return text
            text = stripped

    def _replace(self, match: re.Match) -> str:
        return f" {self._replacements[match.group(1)]} "

    def _check_vocabulary(self):
        """Replacement outputs must already be canonical or normalize() stops being idempotent."""
        sources = set(self.unit_map) | set(self.abbreviations)
        for key in sources:
            if not _KEY_RE.fullmatch(key):
                raise ConfigurationInvalid(
                    f"Replacement key '{key}' must be a single lowercase alphanumeric word"
                )
        brand_words = {w for phrase in self.brand_qualifiers for w in phrase.lower().split()}
        for canonical in set(self.unit_map.values()) | set(self.abbreviations.values()):
            for word in canonical.split():
                if word in sources:
                    raise ConfigurationInvalid(
                        f"Canonical word '{word}' is itself a replacement key"
                    )
                if word in brand_words:
                    raise ConfigurationInvalid(
                        f"Canonical word '{word}' would be stripped as a brand qualifier"
                    )
