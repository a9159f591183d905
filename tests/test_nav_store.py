from pseudolite_nav.models import IonoParams, NavMessage, SuplClient
from pseudolite_nav.sat.nav_store import EphemerisSourceSelector, NavMessageStore, NavSource, hardware_covers
from pseudolite_nav.sat.simple_gps import SimpleGpsConstellation

IONO = IonoParams(alpha=(1e-8, 0.0, 0.0, 0.0), beta=(9e4, 0.0, 0.0, 0.0))


class FakeSuplClient(SuplClient):
    def __init__(self, nav: NavMessage) -> None:
        self.nav = nav
        self.requests: list[tuple[int, int]] = []

    def fetch_nav_message(self, lat_e7: int, lng_e7: int) -> NavMessage:
        self.requests.append((lat_e7, lng_e7))
        return self.nav


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


def _hardware(prns: list[int], iono: IonoParams | None = IONO) -> NavMessageStore:
    constellation = SimpleGpsConstellation()
    store = NavMessageStore()
    for prn in prns:
        store.update_ephemeris(constellation.ephemeris(prn, 2300, 0.0))
    if iono is not None:
        store.update_iono(iono)
    return store


def test_store_snapshot_and_clear() -> None:
    store = _hardware([1, 2, 3])

    nav = store.snapshot()
    assert nav.prns == [1, 2, 3]
    assert nav.iono == IONO

    store.clear()
    assert store.snapshot().prns == []
    assert store.snapshot().iono is None


def test_hardware_coverage_rules() -> None:
    nav = _hardware([1, 2, 3, 4]).snapshot()

    assert hardware_covers(nav, [1, 2, 3, 4])
    assert not hardware_covers(nav, [1, 2, 3, 4, 5])
    assert hardware_covers(nav, [1, 2, 3, 4, 5], minimum=4)
    assert not hardware_covers(_hardware([1, 2, 3, 4], iono=None).snapshot(), [1, 2])


def test_file_navigation_wins() -> None:
    file_nav = SimpleGpsConstellation().nav_message(2300, 0.0)
    selector = EphemerisSourceSelector(hardware=_hardware([1, 2, 3, 4]), file_nav=file_nav)

    selection = selector.select([1, 2, 3, 4])

    assert selection.source is NavSource.FILE
    assert selection.nav is file_nav


def test_hardware_used_when_it_covers_satellites() -> None:
    selector = EphemerisSourceSelector(hardware=_hardware([1, 2, 3, 4]))

    selection = selector.select([1, 2, 3, 4])

    assert selection.source is NavSource.HARDWARE
    assert selection.nav is not None
    assert selection.nav.prns == [1, 2, 3, 4]


def test_supl_fallback_is_cached_and_refreshed() -> None:
    supl_nav = SimpleGpsConstellation().nav_message(2300, 0.0)
    client = FakeSuplClient(supl_nav)
    clock = FakeClock()
    selector = EphemerisSourceSelector(hardware=_hardware([1]), supl_client=client, refresh_s=60.0, clock=clock)
    selector.set_reference_location(400_000_000, 1_180_000_000)

    first = selector.select([1, 2, 3, 4])
    clock.now = 30.0
    selector.select([1, 2, 3, 4])
    clock.now = 61.0
    selector.select([1, 2, 3, 4])

    assert first.source is NavSource.SUPL
    assert first.nav is supl_nav
    assert client.requests == [(400_000_000, 1_180_000_000)] * 2


def test_supl_needs_reference_location_and_client() -> None:
    selector = EphemerisSourceSelector()
    assert selector.select([1, 2, 3, 4]).reason == "no reference location for SUPL request"

    selector.set_reference_location(1, 2)
    selection = selector.select([1, 2, 3, 4])
    assert selection.nav is None
    assert selection.reason == "no SUPL client configured"
