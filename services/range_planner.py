from dataclasses import dataclass


@dataclass(frozen=True)
class RangeRequestPlan:
    range_spec: str
    expect_first_load: bool
    expect_must_get_206: bool

    @property
    def anchored(self):
        """True for `<n>-` requests that re-fetch the last known byte."""
        return not self.range_spec.startswith("-")

    def headers(self):
        return {
            "Range": f"bytes={self.range_spec}",
            "Cache-Control": "no-cache",
            # Compressed transfer would break the byte offsets
            "Accept-Encoding": "identity",
        }


def plan(known_file_size, load_bytes, probed_size=None):
    """Decide which byte range to request next.

    With no known size (or an empty file) ask for the last `load_bytes`
    bytes, clamped to `probed_size` when a HEAD probe supplied one. Otherwise
    re-request the last known byte onwards: an unchanged file then answers
    with exactly that one byte, and a truncated file answers 416.
    """
    if not known_file_size:
        length = load_bytes
        if probed_size:
            length = min(load_bytes, probed_size)
        return RangeRequestPlan(
            range_spec=f"-{length}",
            expect_first_load=True,
            expect_must_get_206=False,
        )

    return RangeRequestPlan(
        range_spec=f"{known_file_size - 1}-",
        expect_first_load=False,
        expect_must_get_206=known_file_size > 1,
    )
