"""Conversion and lookups over curated venue data."""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Any, Optional, Sequence

from ..models.domain import (
    DeliveryType,
    LatLng,
    NetworkState,
    PointOfInterest,
    UnloadingPlace,
    Venue,
    WorkplaceEntrance,
)

logger = logging.getLogger(__name__)

OSM_NODE_URL = "http://www.openstreetmap.org/node/{}"


def _as_lat_lng(data: Optional[dict[str, Any]]) -> Optional[LatLng]:
    if not data:
        return None
    try:
        return (float(data["lat"]), float(data["lon"]))
    except (KeyError, TypeError, ValueError):
        return None


def _parse_unloading_place(data: dict[str, Any]) -> Optional[UnloadingPlace]:
    location = _as_lat_lng(data.get("image_note"))
    if location is None:
        logger.debug("Skipping unloading place %s without a location", data.get("id"))
        return None
    access_points = [point for point in map(_as_lat_lng, data.get("access_points") or []) if point is not None]
    return UnloadingPlace(
        id=int(data["id"]),
        location=location,
        access_points=access_points,
        osm_feature_id=data.get("osm_feature"),
        description=data.get("description"),
        opening_hours=data.get("opening_hours"),
        parking_condition=(data.get("as_osm_tags") or {}).get("parking:condition"),
    )


def _parse_workplace_entrance(data: dict[str, Any]) -> Optional[WorkplaceEntrance]:
    osm_entrance_id = (data.get("entrance_data") or {}).get("osm_feature")
    if osm_entrance_id is None:
        return None
    places = [place for place in map(_parse_unloading_place, data.get("unloading_places") or []) if place]
    return WorkplaceEntrance(
        id=int(data["id"]),
        osm_entrance_id=int(osm_entrance_id),
        delivery_type=DeliveryType.parse(data.get("deliveries")),
        unloading_places=places,
        description=data.get("description"),
        delivery_instructions=data.get("delivery_instructions"),
        delivery_hours=data.get("delivery_hours"),
        delivery_types=list(data.get("delivery_types") or []),
    )


def parse_venue_response(poi: PointOfInterest, response: dict[str, Any]) -> Optional[Venue]:
    """Build a Venue from an OLMap feature response; None when it has no workplace."""

    workplace = response.get("workplace")
    if not workplace:
        return None
    entrances = [
        entrance
        for entrance in map(_parse_workplace_entrance, workplace.get("workplace_entrances") or [])
        if entrance is not None
    ]
    profile_image = (workplace.get("image_note") or {}).get("image")
    if profile_image:
        profile_images = [profile_image]
    else:
        profile_images = [
            note["image"]
            for note in response.get("image_notes") or []
            if note.get("image") and "Workplace" in (note.get("tags") or [])
        ]
    return Venue(
        poi=poi,
        osm_feature_id=workplace.get("osm_feature"),
        name=(workplace.get("as_osm_tags") or {}).get("name"),
        entrances=entrances,
        delivery_instructions=workplace.get("delivery_instructions"),
        delivery_hours=workplace.get("delivery_hours"),
        profile_images=profile_images,
    )


def to_venue_state(poi: PointOfInterest, state: NetworkState[dict[str, Any]]) -> NetworkState[Venue]:
    if not state.ok:
        return NetworkState.error(state.message or "venue data unavailable")
    venue = parse_venue_response(poi, state.response)
    if venue is None:
        return NetworkState.error(f"feature {poi.id} is not a workplace")
    return NetworkState.success(venue)


def venue_unloading_places(venue: Optional[Venue]) -> list[UnloadingPlace]:
    """Venue-wide unloading places, each record listed once in entrance order."""

    if venue is None:
        return []
    seen: set[int] = set()
    places: list[UnloadingPlace] = []
    for entrance in venue.entrances:
        for place in entrance.unloading_places:
            if place.id not in seen:
                seen.add(place.id)
                places.append(place)
    return places


def unloading_place_entrances(venue: Optional[Venue]) -> dict[int, list[int]]:
    """Map unloading place id to the OSM ids of every entrance it serves."""

    links: dict[int, list[int]] = {}
    if venue is None:
        return links
    for entrance in venue.entrances:
        for place in entrance.unloading_places:
            links.setdefault(place.id, []).append(entrance.osm_entrance_id)
    return links


def find_workplace_entrance(venue: Optional[Venue], osm_entrance_id: int) -> Optional[WorkplaceEntrance]:
    if venue is None:
        return None
    for entrance in venue.entrances:
        if entrance.osm_entrance_id == osm_entrance_id:
            return entrance
    return None


def restrict_to_resolved(
    venue: Venue, nodes: Sequence[PointOfInterest]
) -> tuple[Venue, list[PointOfInterest]]:
    """Keep only entrances whose OSM node resolved, preserving venue order.

    Returns the rewritten venue and the matching nodes in the same order.
    """

    by_id = {node.id: node for node in nodes}
    kept: list[WorkplaceEntrance] = []
    ordered: list[PointOfInterest] = []
    for entrance in venue.entrances:
        node = by_id.get(entrance.osm_entrance_id)
        if node is None:
            logger.info("Dropping entrance %s of venue %s: node %s not found", entrance.id, venue.poi.id, entrance.osm_entrance_id)
            continue
        kept.append(entrance)
        ordered.append(node)
    return replace(venue, entrances=kept), ordered


def _point_feature(lat_lng: LatLng, properties: dict[str, Any]) -> dict[str, Any]:
    return {
        "type": "Feature",
        "geometry": {"type": "Point", "coordinates": [lat_lng[1], lat_lng[0]]},
        "properties": properties,
    }


def venue_to_geojson(venue: Venue, entrances: Sequence[PointOfInterest]) -> dict[str, Any]:
    """Venue entrances and unloading places as a FeatureCollection for display."""

    features = []
    for workplace_entrance, node in zip(venue.entrances, entrances):
        properties: dict[str, Any] = dict(node.tags)
        properties.update(
            {
                "@id": OSM_NODE_URL.format(node.id),
                "entrance": node.tags.get("entrance", "yes"),
                "workplace_entrance_id": workplace_entrance.id,
                "deliveries": workplace_entrance.delivery_type.value,
            }
        )
        features.append(_point_feature(node.lat_lng, properties))
        for place in workplace_entrance.unloading_places:
            features.append(
                {
                    "type": "Feature",
                    "geometry": {
                        "type": "LineString",
                        "coordinates": [
                            [place.location[1], place.location[0]],
                            [node.lon, node.lat],
                        ],
                    },
                    "properties": {"unloading_place_id": place.id, "entrance_id": node.id},
                }
            )
    for place in venue_unloading_places(venue):
        features.append(
            _point_feature(
                place.location,
                {"unloading_place_id": place.id, "parking:condition": place.parking_condition},
            )
        )
        for access_point in place.access_points:
            features.append(_point_feature(access_point, {"access_point_of": place.id}))
    return {"type": "FeatureCollection", "features": features}
