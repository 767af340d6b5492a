"""
Team and venue name normalization for cross-source matching.

Both functions are pure: lower-case, transliterate to ASCII with unidecode,
drop everything that is not [a-z0-9]. Team keys are then folded through a
static alias table; venue keys lose generic words like "estadio" instead.
"""
from __future__ import annotations

import re
from typing import Optional

from unidecode import unidecode

# Aliases shorter than this only fold on exact equality; longer ones also
# fold when contained in the key ("crflamengo" -> "flamengo").
MIN_CONTAINMENT_ALIAS_LEN = 6

# canonical key -> aliases, all already in stripped form.
# An alias must not appear under two canonical keys.
TEAM_ALIASES: dict[str, tuple[str, ...]] = {
    # Brasil
    "flamengo": ("flamengo", "crflamengo", "cluberegatasdoflamengo", "mengao", "crf", "fla"),
    "vasco": ("vascodagama", "crvascodagama", "vascodarama", "vascao"),
    "fluminense": ("fluminense", "fluminensefc", "tricolordaslaranjeiras", "flu", "fluzao"),
    "botafogo": ("botafogorj", "botafogofr", "botafogofutebolregatas", "fogao"),
    "botafogosp": ("botafogoribeiraopreto",),
    "palmeiras": ("palmeiras", "sepalmeiras", "sociedadeesportivapalmeiras", "palestra"),
    "corinthians": ("corinthians", "sccorinthians", "corinthianspaulista", "sccp", "timao", "coringao"),
    "saopaulo": ("saopaulofc", "spfc", "tricolorpaulista"),
    "santos": ("santosfc", "santosfutebolclube", "peixe"),
    "internacional": ("scinternacional", "sportclubinternacional"),
    "gremio": ("gremiofbpa", "gremiopaf", "gremiofootballportoalegrense", "imortal"),
    "novorizontino": ("gremionovorizontino",),
    "cruzeiro": ("cruzeiro", "cruzeiroec", "cruzeiroesporteclube", "raposa", "cru"),
    "atleticomg": ("atleticomineiro", "clubeatleticomineiro", "galo"),
    "atleticopr": ("athleticopr", "athleticoparanaense", "atleticoparanaense", "furacao", "cap"),
    "bahia": ("ecbahia", "esporteclubebahia", "esquadrao"),
    "vitoria": ("ecvitoria", "esporteclubevitoria", "leaodabarra"),
    "sport": ("sportrecife", "sportclubrecife", "leaodailha"),
    "fortaleza": ("fortalezaec", "fortalezaesporteclube", "leaodopici"),
    "ceara": ("cearasc", "cearasportingclub", "vozao"),
    "juventude": ("ecjuventude", "esporteclubejuventude"),
    "goias": ("goiasec", "goiasesporteclube"),
    "coritiba": ("coritibafc", "coritibafootballclub", "coxa"),
    "americamg": ("americamineiro", "americafcmg", "coelho"),
    "bragantino": ("redbullbragantino", "rbbragantino"),
    "voltaredonda": ("voltaredondafc", "volta"),
    "novaiguacu": ("noviguacu", "novaiguacufc"),
    # España
    "realmadrid": ("real", "realmadridcf", "realmadridclubfutbol"),
    "barcelona": ("fcbarcelona", "barca"),
    "barcelonasc": ("barcelonasportingclub", "barcelonaguayaquil"),
    "atleticomadrid": ("clubatleticomadrid",),
    "athletic": ("athleticbilbao", "athleticclub", "bilbao"),
    "realsociedad": ("realsociedadfutbol", "realsociedadsansebastian"),
    "betis": ("realbetis", "realbetisbalompie"),
    "celtavigo": ("celta", "rccelta"),
    "espanyol": ("rcdespanyol", "rcdeespanyol"),
    "osasuna": ("caosasuna", "atleticoosasuna"),
    # England
    "manchesterunited": ("manunited", "manutd", "manchesterutd"),
    "manchestercity": ("mancity", "manchestercityfc"),
    "liverpool": ("liverpoolfc",),
    "chelsea": ("chelseafc",),
    "arsenal": ("arsenalfc", "gunners"),
    "tottenham": ("tottenhamhotspur", "spurs"),
    # Italia
    "juventus": ("juventusfc",),
    "intermilan": ("inter", "internazionale", "fcinternazionale", "intermilao"),
    "milan": ("acmilan",),
    "roma": ("asroma",),
    # Others
    "bayernmunich": ("bayern", "fcbayern", "bayernmunchen", "fcbayernmunchen"),
    "psg": ("parissaintgermain", "parissg"),
    "benfica": ("slbenfica", "sportlisboabenfica"),
    "porto": ("fcporto", "futebolclubedoporto"),
    "sportingcp": ("sportingclubeportugal", "sportinglisboa"),
    "bocajuniors": ("boca", "cabocajuniors"),
    "riverplate": ("river", "cariverplate"),
}

_EXACT_ALIASES: dict[str, str] = {
    alias: canonical for canonical, aliases in TEAM_ALIASES.items() for alias in aliases
}

_CONTAINMENT_ALIASES: list[tuple[str, str]] = sorted(
    (
        (alias, canonical)
        for alias, canonical in _EXACT_ALIASES.items()
        if len(alias) >= MIN_CONTAINMENT_ALIAS_LEN
    ),
    key=lambda pair: (-len(pair[0]), pair[0]),
)

VENUE_WORDS: tuple[str, ...] = (
    "estadio",
    "estadi",
    "stadium",
    "stadion",
    "stadio",
    "stade",
    "arena",
)

_CONNECTIVE_RE = re.compile(r"\s+de\s+")
_NON_ALNUM_RE = re.compile(r"[^a-z0-9]")
_VENUE_WORDS_RE = re.compile("|".join(sorted(VENUE_WORDS, key=len, reverse=True)))

# Club-form suffixes dropped before display/lookup.
_CLUB_SUFFIXES: tuple[re.Pattern[str], ...] = tuple(
    re.compile(pattern, re.IGNORECASE)
    for pattern in (
        r"\s*futebol\s*clube\b",
        r"\s*esporte\s*clube\b",
        r"\s*sport\s*club\b",
        r"\s*atl[eé]tico\s*clube\b",
        r"\s*associa[cç][aã]o\s*desportiva\b",
        r"\s*club\s*f[uú]tbol\b",
        r"\s*club\s*deportivo\b",
        r"\s*real\s*club\b",
        r"\s*f[uú]tbol\s*club\b",
    )
)


def _strip(text: str) -> str:
    lowered = unidecode(text).lower()
    lowered = _CONNECTIVE_RE.sub(" ", lowered)
    return _NON_ALNUM_RE.sub("", lowered)


def fold_alias(key: str) -> str:
    """Fold an already-stripped key onto its canonical team key, if known."""
    if key in TEAM_ALIASES:
        return key
    canonical = _EXACT_ALIASES.get(key)
    if canonical is not None:
        return canonical
    for alias, canonical in _CONTAINMENT_ALIASES:
        if alias in key:
            return canonical
    return key


def normalize(text: Optional[str]) -> str:
    """
    Comparison key for a team name.

    >>> normalize("Real Madrid CF")
    'realmadrid'
    >>> normalize("Vasco da Gama")
    'vasco'
    """
    if not text:
        return ""
    stripped = _strip(text)
    if not stripped:
        return ""
    return fold_alias(stripped)


def normalize_venue(text: Optional[str]) -> str:
    """Comparison key for a stadium name. No alias folding."""
    if not text:
        return ""
    return _VENUE_WORDS_RE.sub("", _strip(text))


def clean_team_name(text: Optional[str]) -> str:
    """Drop club-form suffixes ("Esporte Clube", "Club Deportivo", ...) keeping readable spacing."""
    if not text:
        return ""
    cleaned = _CONNECTIVE_RE.sub(" ", text)
    for pattern in _CLUB_SUFFIXES:
        cleaned = pattern.sub("", cleaned, count=1)
    return cleaned.strip()
