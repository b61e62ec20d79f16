import pytest
from hypothesis import given, strategies as st

from ocdesk.utils.database import safe_identifier

# Valid SQL identifiers: start with letter/underscore, then alphanumeric/underscore
valid_identifier = st.from_regex(r"[A-Za-z_][A-Za-z0-9_]*", fullmatch=True)

INJECTION_CHARS = frozenset("'\";-/*\\")


@given(name=valid_identifier)
def test_safe_identifier_accepts_all_valid_identifiers(name: str) -> None:
    assert safe_identifier(name) == f'"{name}"'


@given(
    prefix=st.text(min_size=0, max_size=10),
    injection_char=st.sampled_from(sorted(INJECTION_CHARS)),
    suffix=st.text(min_size=0, max_size=10),
)
def test_safe_identifier_rejects_injection_characters(
    prefix: str, injection_char: str, suffix: str
) -> None:
    with pytest.raises(ValueError, match="Invalid SQL identifier"):
        _ = safe_identifier(prefix + injection_char + suffix)


@given(name=st.text(alphabet=st.characters(categories=["Nd"]), min_size=1))
def test_safe_identifier_rejects_leading_digits(name: str) -> None:
    with pytest.raises(ValueError, match="Invalid SQL identifier"):
        _ = safe_identifier(name)
