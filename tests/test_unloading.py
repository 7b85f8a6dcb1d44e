from src.gatesolve.models.domain import (
    DeliveryType,
    ElementType,
    PointOfInterest,
    UnloadingPlace,
    Venue,
    WorkplaceEntrance,
)
from src.gatesolve.services.unloading import (
    delivery_priority,
    rank_venue_entrances,
    select_unloading_places,
    sort_entrances_by_delivery_type,
)


def _poi(pid: int, lat: float = 60.17, lon: float = 24.94, element_type: ElementType = ElementType.NODE) -> PointOfInterest:
    return PointOfInterest(id=pid, type=element_type, lat=lat, lon=lon)


def _entrance(eid: int, osm_id: int, delivery: DeliveryType = DeliveryType.NONE, places=None) -> WorkplaceEntrance:
    return WorkplaceEntrance(id=eid, osm_entrance_id=osm_id, delivery_type=delivery, unloading_places=places or [])


def _place(pid: int, access_points=None) -> UnloadingPlace:
    return UnloadingPlace(id=pid, location=(60.1701, 24.9401), access_points=access_points or [])


def test_delivery_priority_order():
    assert delivery_priority(DeliveryType.MAIN) > delivery_priority(DeliveryType.YES)
    assert delivery_priority(DeliveryType.YES) > delivery_priority(DeliveryType.NONE)
    assert delivery_priority(DeliveryType.NONE) > delivery_priority(DeliveryType.NO)


def test_delivery_priority_treats_unknown_and_missing_as_none():
    assert delivery_priority("private") == delivery_priority(DeliveryType.NONE)
    assert delivery_priority(None) == 0
    assert delivery_priority("") == 0
    assert delivery_priority("MAIN") == 2


def test_sort_entrances_by_delivery_type_is_stable():
    entrances = [
        _entrance(1, 101, DeliveryType.NO),
        _entrance(2, 102, DeliveryType.YES),
        _entrance(3, 103, DeliveryType.MAIN),
        _entrance(4, 104, DeliveryType.YES),
        _entrance(5, 105, DeliveryType.NONE),
    ]

    ordered = sort_entrances_by_delivery_type(entrances)

    assert [entrance.id for entrance in ordered] == [3, 2, 4, 5, 1]
    # Input left untouched
    assert [entrance.id for entrance in entrances] == [1, 2, 3, 4, 5]


def test_select_unloading_places_without_venue_is_empty():
    selection = select_unloading_places(None, _poi(1))

    assert selection.places == []
    assert selection.workplace_entrance is None


def test_entrance_specific_places_win_over_venue_wide():
    own = _place(10)
    other = _place(11)
    venue = Venue(
        poi=_poi(500, element_type=ElementType.WAY),
        entrances=[_entrance(1, 101, places=[own]), _entrance(2, 102, places=[other])],
    )

    selection = select_unloading_places(venue, _poi(101), preferred_id=11)

    assert selection.places == [own]
    assert selection.workplace_entrance.id == 1
    assert not selection.venue_wide


def test_venue_destination_uses_deduplicated_venue_wide_places():
    shared = _place(10)
    second = _place(11)
    venue_poi = _poi(500, element_type=ElementType.WAY)
    venue = Venue(
        poi=venue_poi,
        entrances=[_entrance(1, 101, places=[shared]), _entrance(2, 102, places=[shared, second])],
    )

    selection = select_unloading_places(venue, venue_poi)

    assert [place.id for place in selection.places] == [10, 11]
    assert selection.venue_wide


def test_venue_wide_places_narrowed_to_preference():
    venue_poi = _poi(500, element_type=ElementType.WAY)
    venue = Venue(poi=venue_poi, entrances=[_entrance(1, 101, places=[_place(10), _place(11)])])

    assert [place.id for place in select_unloading_places(venue, venue_poi, preferred_id=11).places] == [11]
    # An unknown preference leaves every place in play
    assert len(select_unloading_places(venue, venue_poi, preferred_id=99).places) == 2


def test_entrance_without_places_gets_no_venue_wide_places():
    venue_poi = _poi(500, element_type=ElementType.WAY)
    venue = Venue(poi=venue_poi, entrances=[_entrance(1, 101), _entrance(2, 102, places=[_place(10)])])

    selection = select_unloading_places(venue, _poi(101))

    assert selection.places == []
    assert selection.workplace_entrance.id == 1


def test_rank_venue_entrances_keeps_nodes_paired():
    venue = Venue(
        poi=_poi(500, element_type=ElementType.WAY),
        entrances=[
            _entrance(1, 101, DeliveryType.NONE),
            _entrance(2, 102, DeliveryType.MAIN),
            _entrance(3, 103, DeliveryType.YES),
            _entrance(4, 104, DeliveryType.MAIN),
        ],
    )
    nodes = [_poi(101), _poi(102, lat=60.1), _poi(104, lat=60.3)]

    ranked, ranked_nodes = rank_venue_entrances(venue, nodes)

    # Entrance 3 has no resolved node and is left out
    assert [entrance.id for entrance in ranked.entrances] == [2, 4, 1]
    assert [node.id for node in ranked_nodes] == [102, 104, 101]
    assert [entrance.id for entrance in venue.entrances] == [1, 2, 3, 4]
