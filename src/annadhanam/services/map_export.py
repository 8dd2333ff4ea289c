from __future__ import annotations

import html
from typing import Optional, Sequence

import folium

from annadhanam.models import NGO, Restaurant
from annadhanam.services.routes import RenderedRoute

ROUTE_COLOR = "#3B82F6"
DROP_OFF_COLOR = "#10B981"
TILE_ATTRIBUTION = '&copy; <a href="https://www.openstreetmap.org/copyright">OpenStreetMap</a>'
TILE_URL = "https://{s}.tile.openstreetmap.org/{z}/{x}/{y}.png"


def _restaurant_popup(restaurant: Restaurant) -> str:
    parts = [f"<b>{html.escape(restaurant.name)}</b>"]
    if restaurant.address:
        parts.append(html.escape(restaurant.address))
    if restaurant.contact_person:
        parts.append(f"Contact: {html.escape(restaurant.contact_person)}")
    return "<br>".join(parts)


def _ngo_popup(ngo: NGO) -> str:
    parts = [f"<b>{html.escape(ngo.name)}</b>"]
    if ngo.address:
        parts.append(html.escape(ngo.address))
    parts.append(f"Capacity: {ngo.capacity_kg:g} kg/day")
    if ngo.operating_hours:
        parts.append(f"Hours: {html.escape(ngo.operating_hours)}")
    return "<br>".join(parts)


def _stop_badge(number: int) -> folium.DivIcon:
    return folium.DivIcon(
        html=f"""
        <div style="
            display:flex;
            align-items:center;
            justify-content:center;
            width:24px;
            height:24px;
            background:{ROUTE_COLOR};
            color:white;
            border-radius:50%;
            font-size:12px;
            font-weight:bold;
            border:2px solid white;
            box-sizing:border-box;
        ">{number}</div>
        """
    )


def build_route_map(
    restaurants: Sequence[Restaurant],
    ngos: Sequence[NGO],
    route: Optional[RenderedRoute],
    *,
    center: tuple[float, float],
    zoom: int = 7,
) -> folium.Map:
    """Leaflet map of all restaurants and NGOs plus the currently shown route."""
    m = folium.Map(location=list(center), zoom_start=zoom, tiles=None)
    folium.TileLayer(tiles=TILE_URL, attr=TILE_ATTRIBUTION, name="OpenStreetMap").add_to(m)

    for r in restaurants:
        folium.Marker(
            location=list(r.coordinate),
            popup=_restaurant_popup(r),
            tooltip=r.name,
            icon=folium.Icon(color="red", icon="cutlery"),
        ).add_to(m)

    for n in ngos:
        folium.Marker(
            location=list(n.coordinate),
            popup=_ngo_popup(n),
            tooltip=n.name,
            icon=folium.Icon(color="green", icon="heart"),
        ).add_to(m)

    if route is None:
        return m

    names = {stop.number: stop.ngo_name for stop in route.stops}
    for seg in route.segments:
        folium.PolyLine(
            [list(seg.start), list(seg.end)],
            color=ROUTE_COLOR,
            weight=3,
            opacity=0.7,
            dash_array="10, 10",
            tooltip=f"{seg.number}. {names.get(seg.number, '')}",
        ).add_to(m)

    for marker in route.markers:
        folium.Circle(
            location=list(marker.center),
            radius=marker.radius,
            color=DROP_OFF_COLOR,
            weight=1,
            fill=True,
            fill_color=DROP_OFF_COLOR,
            fill_opacity=0.2,
        ).add_to(m)
        folium.Marker(
            location=list(marker.center),
            tooltip=f"{marker.number}. {names.get(marker.number, '')}",
            icon=_stop_badge(marker.number),
        ).add_to(m)

    return m


def render_map_html(m: folium.Map) -> str:
    return m.get_root().render()
