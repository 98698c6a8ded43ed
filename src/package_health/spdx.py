"""SPDX license reference database.

Static table of license identifiers with their legal family, Blue Oak
Council quality rating and patent-grant flag, plus helpers for normalising
free-text license strings and matching policy patterns.
"""

import fnmatch
from dataclasses import dataclass
from typing import Literal, Optional

from package_health.models import BlueOakRating

LicenseFamily = Literal[
    "permissive",
    "weak-copyleft",
    "strong-copyleft",
    "network-copyleft",
]

# Human-readable names for the identifiers reports show most often.
# Based on https://spdx.org/licenses/
SPDX_NAMES = {
    "0BSD": "BSD Zero Clause License",
    "MIT": "MIT License",
    "MIT-0": "MIT No Attribution",
    "Apache-1.1": "Apache License 1.1",
    "Apache-2.0": "Apache License 2.0",
    "BSD-2-Clause": 'BSD 2-Clause "Simplified" License',
    "BSD-3-Clause": 'BSD 3-Clause "New" or "Revised" License',
    "ISC": "ISC License",
    "Zlib": "zlib License",
    "BSL-1.0": "Boost Software License 1.0",
    "Unlicense": "The Unlicense",
    "CC0-1.0": "Creative Commons Zero v1.0 Universal",
    "WTFPL": "Do What The F*ck You Want To Public License",
    "Python-2.0": "Python License 2.0",
    "PSF-2.0": "Python Software Foundation License 2.0",
    "BlueOak-1.0.0": "Blue Oak Model License 1.0.0",
    "MPL-2.0": "Mozilla Public License 2.0",
    "EPL-1.0": "Eclipse Public License 1.0",
    "EPL-2.0": "Eclipse Public License 2.0",
    "LGPL-2.1-only": "GNU Lesser General Public License v2.1 only",
    "LGPL-2.1-or-later": "GNU Lesser General Public License v2.1 or later",
    "LGPL-3.0-only": "GNU Lesser General Public License v3.0 only",
    "LGPL-3.0-or-later": "GNU Lesser General Public License v3.0 or later",
    "GPL-2.0-only": "GNU General Public License v2.0 only",
    "GPL-2.0-or-later": "GNU General Public License v2.0 or later",
    "GPL-3.0-only": "GNU General Public License v3.0 only",
    "GPL-3.0-or-later": "GNU General Public License v3.0 or later",
    "AGPL-3.0-only": "GNU Affero General Public License v3.0 only",
    "AGPL-3.0-or-later": "GNU Affero General Public License v3.0 or later",
    "SSPL-1.0": "Server Side Public License, v 1",
}

_PERMISSIVE = [
    "0BSD", "MIT", "MIT-0", "MIT-Modern-Variant", "ISC", "BSD-1-Clause",
    "BSD-2-Clause", "BSD-2-Clause-Patent", "BSD-3-Clause", "BSD-3-Clause-Clear",
    "BSD-4-Clause", "Apache-1.0", "Apache-1.1", "Apache-2.0", "Unlicense",
    "CC0-1.0", "Zlib", "BSL-1.0", "PostgreSQL", "X11", "Artistic-2.0", "WTFPL",
    "FTL", "IJG", "Libpng", "libtiff", "NTP", "OpenSSL", "PHP-3.0", "PHP-3.01",
    "Python-2.0", "PSF-2.0", "Ruby", "Unicode-DFS-2016", "Vim", "W3C", "Xnet",
    "CC-BY-1.0", "CC-BY-2.0", "CC-BY-2.5", "CC-BY-3.0", "CC-BY-4.0",
    "AFL-1.1", "AFL-1.2", "AFL-2.0", "AFL-2.1", "AFL-3.0", "UPL-1.0", "NCSA",
    "ECL-1.0", "ECL-2.0", "EFL-1.0", "EFL-2.0", "Fair", "MS-PL", "HPND",
    "BlueOak-1.0.0", "JSON", "Beerware", "Artistic-1.0", "Artistic-1.0-Perl",
]

_WEAK_COPYLEFT = [
    "LGPL-2.0", "LGPL-2.0-only", "LGPL-2.0-or-later", "LGPL-2.1",
    "LGPL-2.1-only", "LGPL-2.1-or-later", "LGPL-3.0", "LGPL-3.0-only",
    "LGPL-3.0-or-later", "MPL-1.0", "MPL-1.1", "MPL-2.0",
    "MPL-2.0-no-copyleft-exception", "EPL-1.0", "EPL-2.0", "CDDL-1.0",
    "CDDL-1.1", "CPL-1.0", "EUPL-1.0", "EUPL-1.1", "EUPL-1.2", "MS-RL",
    "APSL-1.0", "APSL-2.0", "OSL-1.0", "OSL-2.0", "OSL-2.1", "OSL-3.0",
    "SPL-1.0", "QPL-1.0", "Sleepycat", "wxWindows", "LPL-1.02",
]

# Also holds the commercially restrictive non-copyleft families
# (CC non-commercial), which classify the same way.
_STRONG_COPYLEFT = [
    "GPL-1.0", "GPL-1.0-only", "GPL-1.0-or-later", "GPL-2.0", "GPL-2.0-only",
    "GPL-2.0-or-later", "GPL-3.0", "GPL-3.0-only", "GPL-3.0-or-later",
    "CC-BY-SA-3.0", "CC-BY-SA-4.0", "CC-BY-NC-3.0", "CC-BY-NC-4.0",
    "CC-BY-NC-SA-4.0", "CC-BY-NC-ND-4.0", "GFDL-1.3-only", "GFDL-1.3-or-later",
    "ODbL-1.0", "OPL-1.0", "SimPL-2.0",
]

_NETWORK_COPYLEFT = [
    "AGPL-1.0", "AGPL-1.0-only", "AGPL-1.0-or-later", "AGPL-3.0",
    "AGPL-3.0-only", "AGPL-3.0-or-later", "SSPL-1.0",
]

_GOLD = {
    "MIT", "MIT-0", "Apache-2.0", "Apache-1.1", "BSD-2-Clause",
    "BSD-2-Clause-Patent", "BlueOak-1.0.0", "CC0-1.0", "Unlicense", "0BSD",
    "UPL-1.0", "NCSA", "FTL", "Fair",
}

_SILVER = {
    "BSD-3-Clause", "BSD-3-Clause-Clear", "ISC", "PostgreSQL", "Zlib", "X11",
    "Python-2.0", "Ruby", "PHP-3.0", "PHP-3.01", "ECL-2.0", "EFL-2.0", "Vim",
    "W3C", "Unicode-DFS-2016", "NTP", "OpenSSL", "MS-PL",
}

_BRONZE = {
    "Artistic-2.0", "LGPL-2.1", "LGPL-2.1-only", "LGPL-2.1-or-later",
    "LGPL-3.0", "LGPL-3.0-only", "LGPL-3.0-or-later", "MPL-2.0", "MPL-1.1",
    "EPL-1.0", "EPL-2.0", "CDDL-1.0", "CDDL-1.1", "EUPL-1.1", "EUPL-1.2",
    "AFL-3.0", "OSL-3.0", "APSL-2.0", "CPL-1.0", "MS-RL",
}

_LEAD = {
    "JSON", "WTFPL", "Beerware", "CC-BY-3.0", "CC-BY-4.0", "BSL-1.0",
    "QPL-1.0", "Artistic-1.0", "Artistic-1.0-Perl", "BSD-4-Clause", "OPL-1.0",
}

_PATENT_CLAUSE = {
    "Apache-1.1", "Apache-2.0", "AFL-1.1", "AFL-1.2", "AFL-2.0", "AFL-2.1",
    "AFL-3.0", "APSL-1.0", "APSL-2.0", "BSD-2-Clause-Patent", "CDDL-1.0",
    "CDDL-1.1", "CPL-1.0", "EPL-1.0", "EPL-2.0", "EUPL-1.0", "EUPL-1.1",
    "EUPL-1.2", "GPL-3.0", "GPL-3.0-only", "GPL-3.0-or-later", "LGPL-3.0",
    "LGPL-3.0-only", "LGPL-3.0-or-later", "AGPL-3.0", "AGPL-3.0-only",
    "AGPL-3.0-or-later", "MPL-2.0", "MPL-2.0-no-copyleft-exception", "MS-PL",
    "OSL-3.0", "PHP-3.01", "SPL-1.0", "UPL-1.0",
}

# Free-text spellings seen in registries, mapped to SPDX identifiers
LICENSE_ALIASES = {
    "MIT License": "MIT",
    "The MIT License": "MIT",
    "Apache License 2.0": "Apache-2.0",
    "Apache License, Version 2.0": "Apache-2.0",
    "Apache Software License": "Apache-2.0",
    "Apache-2": "Apache-2.0",
    "Apache 2.0": "Apache-2.0",
    "Apache 2": "Apache-2.0",
    "BSD": "BSD-3-Clause",
    "BSD License": "BSD-3-Clause",
    "BSD-3": "BSD-3-Clause",
    "BSD-2": "BSD-2-Clause",
    "3-Clause BSD": "BSD-3-Clause",
    "2-Clause BSD": "BSD-2-Clause",
    "ISC License": "ISC",
    "GPLv3": "GPL-3.0-only",
    "GPLv2": "GPL-2.0-only",
    "GNU GPL v3": "GPL-3.0-only",
    "GNU GPL v2": "GPL-2.0-only",
    "LGPLv3": "LGPL-3.0-only",
    "LGPLv2.1": "LGPL-2.1-only",
    "AGPLv3": "AGPL-3.0-only",
    "MPL 2.0": "MPL-2.0",
    "MPL-2": "MPL-2.0",
    "CC0": "CC0-1.0",
    "Public Domain": "Unlicense",
    "Unlicensed": "UNLICENSED",
}

# Strings that declare no usable license at all
INVALID_LICENSE_MARKERS = frozenset({"", "UNLICENSED", "UNKNOWN", "NONE", "N/A"})

# Deprecated bare GNU identifiers and their current SPDX form
DEPRECATED_IDS = {
    "GPL-1.0": "GPL-1.0-only",
    "GPL-2.0": "GPL-2.0-only",
    "GPL-3.0": "GPL-3.0-only",
    "LGPL-2.0": "LGPL-2.0-only",
    "LGPL-2.1": "LGPL-2.1-only",
    "LGPL-3.0": "LGPL-3.0-only",
    "AGPL-1.0": "AGPL-1.0-only",
    "AGPL-3.0": "AGPL-3.0-only",
}


@dataclass(frozen=True)
class LicenseInfo:
    """Reference data for one SPDX license.

    Attributes:
        spdx_id: Canonical SPDX identifier.
        name: Human-readable license name.
        family: Legal family driving the policy category.
        rating: Blue Oak Council quality rating.
        has_patent_clause: True if the license grants patent rights.
    """

    spdx_id: str
    name: str
    family: LicenseFamily
    rating: BlueOakRating
    has_patent_clause: bool = False


def _rating_for(spdx_id: str) -> BlueOakRating:
    if spdx_id in _GOLD:
        return "gold"
    if spdx_id in _SILVER:
        return "silver"
    if spdx_id in _BRONZE:
        return "bronze"
    if spdx_id in _LEAD:
        return "lead"
    return "unrated"


def _build_database() -> dict[str, LicenseInfo]:
    families: list[tuple[LicenseFamily, list[str]]] = [
        ("permissive", _PERMISSIVE),
        ("weak-copyleft", _WEAK_COPYLEFT),
        ("strong-copyleft", _STRONG_COPYLEFT),
        ("network-copyleft", _NETWORK_COPYLEFT),
    ]
    database: dict[str, LicenseInfo] = {}
    for family, ids in families:
        for spdx_id in ids:
            canonical = DEPRECATED_IDS.get(spdx_id, spdx_id)
            database[spdx_id] = LicenseInfo(
                spdx_id=canonical,
                name=SPDX_NAMES.get(canonical, canonical),
                family=family,
                rating=_rating_for(spdx_id),
                has_patent_clause=spdx_id in _PATENT_CLAUSE,
            )
    return database


LICENSE_DATABASE: dict[str, LicenseInfo] = _build_database()
_LOWER_INDEX = {key.lower(): info for key, info in LICENSE_DATABASE.items()}


def lookup_license(spdx_id: str) -> Optional[LicenseInfo]:
    """Look up reference data for an SPDX identifier.

    Matching is exact first, then case-insensitive.

    Args:
        spdx_id: SPDX identifier (e.g., "MIT", "GPL-3.0-only").

    Returns:
        LicenseInfo, or None if the identifier is not in the database.
    """
    spdx_id = spdx_id.strip()
    return LICENSE_DATABASE.get(spdx_id) or _LOWER_INDEX.get(spdx_id.lower())


def normalize_license(license_text: str) -> str:
    """Map common free-text spellings to SPDX identifiers.

    Unrecognised strings are returned stripped but otherwise unchanged.
    """
    text = license_text.strip()
    return LICENSE_ALIASES.get(text, text)


def is_invalid_license(license_text: Optional[str]) -> bool:
    """Return True for strings that declare no usable license."""
    if license_text is None:
        return True
    text = license_text.strip().upper()
    return text in INVALID_LICENSE_MARKERS or text.startswith("SEE LICENSE IN")


def get_blue_oak_rating(spdx_id: str) -> BlueOakRating:
    info = lookup_license(spdx_id)
    return info.rating if info else "unrated"


def has_patent_clause(spdx_id: str) -> bool:
    info = lookup_license(spdx_id)
    return info.has_patent_clause if info else False


def is_legally_sound(rating: BlueOakRating) -> bool:
    """Gold and silver licenses are considered legally sound."""
    return rating in ("gold", "silver")


def matches_license_pattern(spdx_id: str, pattern: str) -> bool:
    """Match an identifier against a policy pattern.

    Patterns are case-insensitive and may use ``*`` as a wildcard, so
    ``GPL-*`` matches ``GPL-3.0-only`` but not ``LGPL-2.1``.
    """
    return fnmatch.fnmatchcase(spdx_id.strip().lower(), pattern.strip().lower())
