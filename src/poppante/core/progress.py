"""Shared progress bar utility for PopPAnTe."""

import sys
from collections.abc import Iterator

import progressbar


def progress_iterator(
    iterable: Iterator, total: int, desc: str = "", enabled: bool = True
) -> Iterator:
    """Wrap an iterator with a progressbar2 display on stdout.

    The test dispatcher feeds completed futures through this, so the
    counter tracks finished tests rather than submitted ones. The bar is
    only drawn when stdout is a terminal, looked up at call time, so
    redirected or captured output is left alone. It is finished in a
    finally block so an exception raised by the caller does not leave the
    terminal line half drawn.

    Args:
        iterable: Iterator to wrap.
        total: Total number of items.
        desc: Optional description prefix.
        enabled: When False (or total is 0, or stdout is not a terminal)
            items pass through untouched.

    Yields:
        Items from the wrapped iterator.
    """
    stream = sys.stdout
    if not enabled or total <= 0 or not stream.isatty():
        yield from iterable
        return

    widgets = [
        f"{desc}: " if desc else "",
        progressbar.Counter(),
        f"/{total} ",
        progressbar.Percentage(),
        " ",
        progressbar.Bar(),
        " ",
        progressbar.ETA(),
    ]
    bar = progressbar.ProgressBar(max_value=total, widgets=widgets, fd=stream)
    bar.start()
    try:
        for done, item in enumerate(iterable, start=1):
            yield item
            bar.update(done)
    finally:
        bar.finish()
