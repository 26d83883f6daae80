import sys
from pathlib import Path

# Add src/ to path so the tests run from a plain checkout
sys.path.insert(0, str(Path(__file__).parent / "src"))


def pytest_addoption(parser):
    parser.addoption("--runslow", action="store_true", default=False,
                     help="also run tests marked as slow (large survey lines)")


def pytest_configure(config):
    config.addinivalue_line("markers", "slow: large synthetic survey lines, deselected unless --runslow")


def pytest_collection_modifyitems(config, items):
    """Deselect tests marked ``slow`` unless ``--runslow`` was given.

    The large-line tests spend most of their time in Numba compilation and
    Delaunay triangulation; the default run keeps to the small fixtures.
    """
    if config.getoption("--runslow"):
        return

    removed = [item for item in items if item.get_closest_marker("slow") is not None]
    if removed:
        config.hook.pytest_deselected(items=removed)
        items[:] = [item for item in items if item.get_closest_marker("slow") is None]
        tr = config.pluginmanager.get_plugin('terminalreporter')
        if tr:
            tr.write_sep('-', f'Deselected {len(removed)} slow tests (use --runslow)')
