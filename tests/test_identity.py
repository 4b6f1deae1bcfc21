"""
Tests pour la dérivation de la clé d'identité des thèmes.

Ce module vérifie le déterminisme de la clé, sa sensibilité à chaque champ et la stabilité de la forme
canonique (précision fixe, normalisation de la casse et de -0.0).
"""

from __future__ import annotations

import random

import pytest

from chartcache.domain.identity import KEY_LENGTH, canonical_form, derive_key
from tests.fakes import make_params

# Variation minimale par champ, au-dessus de la précision de quantification
FIELD_VARIANTS = {
    "year": 1991,
    "month": 7,
    "day": 16,
    "hour": 15,
    "minute": 31,
    "second": 1,
    "latitude": 28.613901,
    "longitude": 77.209001,
    "timezone": 5.75,
    "observation_point": "geocentric",
    "ayanamsha": "sayana",
}


def test_same_params_same_key() -> None:
    """Deux constructions indépendantes des mêmes valeurs donnent la même clé."""
    assert derive_key(make_params()) == derive_key(make_params())


def test_key_is_hex_of_fixed_length() -> None:
    key = derive_key(make_params())
    assert len(key) == KEY_LENGTH
    int(key, 16)


@pytest.mark.parametrize("field", sorted(FIELD_VARIANTS))
def test_each_field_changes_key(field: str) -> None:
    """Modifier un seul champ modifie la clé."""
    assert derive_key(make_params(**{field: FIELD_VARIANTS[field]})) != derive_key(make_params())


def test_random_params_distinct_keys() -> None:
    """Des paramètres tirés au hasard et distincts ne partagent jamais de clé."""
    rng = random.Random(42)
    seen: dict[str, str] = {}
    for _ in range(200):
        params = make_params(
            year=rng.randint(1900, 2030),
            month=rng.randint(1, 12),
            day=rng.randint(1, 28),
            hour=rng.randint(0, 23),
            minute=rng.randint(0, 59),
            second=rng.randint(0, 59),
            latitude=round(rng.uniform(-90, 90), 6),
            longitude=round(rng.uniform(-180, 180), 6),
            timezone=rng.choice([-5.0, 0.0, 1.0, 5.5, 9.0]),
        )
        form = canonical_form(params)
        key = derive_key(params)
        assert seen.get(key, form) == form
        seen[key] = form


def test_canonical_form_layout() -> None:
    assert canonical_form(make_params()) == (
        "v1|year=1990|month=6|day=15|hour=14|minute=30|second=0"
        "|latitude=28.613900|longitude=77.209000|timezone=5.50"
        "|observation_point=topocentric|ayanamsha=lahiri"
    )


def test_sub_precision_noise_is_ignored() -> None:
    """Des flottants égaux à la précision retenue produisent la même clé."""
    noisy = make_params(latitude=28.61390000004, longitude=77.2089999999, timezone=5.5000001)
    assert derive_key(noisy) == derive_key(make_params())


def test_negative_zero_matches_zero() -> None:
    a = make_params(latitude=-0.0, longitude=-0.0, timezone=-0.0)
    b = make_params(latitude=0.0, longitude=0.0, timezone=0.0)
    assert canonical_form(a) == canonical_form(b)
    assert derive_key(a) == derive_key(b)


def test_config_case_and_spaces_are_normalized() -> None:
    noisy = make_params(observation_point=" Topocentric ", ayanamsha="LAHIRI")
    assert derive_key(noisy) == derive_key(make_params())


def test_integral_timezone_formats_like_float() -> None:
    """Un fuseau entier et le même fuseau flottant sont une seule identité."""
    assert derive_key(make_params(timezone=1)) == derive_key(make_params(timezone=1.0))
