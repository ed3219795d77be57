import pytest
from hypothesis import given
from hypothesis import strategies as st

from otto.git_wrapper import parse_log_line, parse_stash_line
from otto.prompts import wrap
from otto.release import ReleaseOptions

# Single-line field text without the separator
field_strategy = st.text(min_size=1).filter(lambda s: "|" not in s and "\n" not in s)
line_text = st.text().filter(lambda s: "\n" not in s and "\r" not in s)


@given(
    hash_=field_strategy,
    author=field_strategy,
    when=field_strategy,
    subject=line_text,
)
def test_log_line_round_trips_any_subject(
    hash_: str, author: str, when: str, subject: str
) -> None:
    """
    Property: Whatever the subject contains (pipes included), the first three
    fields and the full subject come back unchanged.
    """
    record = parse_log_line(f"{hash_}|{author}|{when}|{subject}")

    assert record is not None
    assert (record.hash, record.author, record.relative_time) == (hash_, author, when)
    assert record.subject == subject


@given(
    index=st.integers(min_value=0, max_value=500),
    message=st.text().filter(lambda s: "\n" not in s),
)
def test_stash_line_ref_is_prefix(index: int, message: str) -> None:
    """Property: The stash reference is everything before the first colon."""
    entry = parse_stash_line(f"stash@{{{index}}}: {message}")

    assert entry is not None
    assert entry.ref == f"stash@{{{index}}}"
    assert entry.message == message.strip()


words_strategy = st.lists(
    st.text(alphabet="abcdefghijklmnopqrstuvwxyz", min_size=1, max_size=25),
    min_size=1,
    max_size=40,
)


@given(words=words_strategy, width=st.integers(min_value=1, max_value=80))
def test_wrap_preserves_words_and_width(words: list[str], width: int) -> None:
    """
    Property: Wrapping never drops, splits or reorders words, and only a line
    holding a single over-long word may exceed the width.
    """
    lines = wrap(" ".join(words), width).splitlines()

    assert " ".join(lines).split() == words
    for line in lines:
        assert len(line) <= width or " " not in line


@given(
    release_type=st.text().filter(lambda s: s not in ("patch", "minor", "major", "none"))
)
def test_unknown_release_types_rejected(release_type: str) -> None:
    """Property: Only the four known release types construct."""
    with pytest.raises(ValueError):
        ReleaseOptions(release_type)
