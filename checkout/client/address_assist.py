"""Address autocomplete and map picker backed by the maps provider.

The provider SDK is supplied by the host through a loader coroutine; this
module only depends on the small surface it probes for. Two autocomplete
variants exist, one per provider API generation, and both report selections
through the same ``on_place_resolved`` subscription.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Iterable

logger = logging.getLogger(__name__)

DEFAULT_MAP_CENTER = (37.7749, -122.4194)
DEFAULT_MAP_ZOOM = 10
PLACE_ZOOM = 15


@dataclass(frozen=True)
class PlaceResolved:
    city: str = ""
    state: str = ""
    postal_code: str = ""
    street: str = ""
    lat: float | None = None
    lng: float | None = None


PlaceListener = Callable[[PlaceResolved], None]
ProviderLoader = Callable[[str], Awaitable[Any]]


def _component_types(component: dict[str, Any]) -> list[str]:
    types = component.get("types")
    if isinstance(types, list):
        return types
    single = types or component.get("type")
    return [single] if single else []


def parse_address_components(components: Iterable[dict[str, Any]] | None) -> PlaceResolved:
    """Normalize legacy (long_name) and current (longText) address components."""

    components = list(components or [])

    def get(kind: str) -> dict[str, Any]:
        return next((c for c in components if kind in _component_types(c)), {})

    def short_text(component: dict[str, Any]) -> str:
        return component.get("short_name") or component.get("shortText") or ""

    def long_text(component: dict[str, Any]) -> str:
        return component.get("long_name") or component.get("longText") or ""

    city = long_text(get("locality")) or long_text(get("postal_town")) or long_text(get("sublocality"))
    street = " ".join(part for part in (long_text(get("route")), long_text(get("street_number"))) if part)
    return PlaceResolved(
        city=city,
        state=short_text(get("administrative_area_level_1")),
        postal_code=long_text(get("postal_code")),
        street=street,
    )


def _coordinate(value: Any) -> float | None:
    if callable(value):
        value = value()
    return float(value) if value is not None else None


class AddressAssist:
    """Capability shared by the autocomplete variants."""

    def __init__(self) -> None:
        self._listeners: list[PlaceListener] = []

    def on_place_resolved(self, listener: PlaceListener) -> Callable[[], None]:
        """Subscribe to resolved places; returns an unsubscribe callable."""

        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener)

    def set_country(self, country_code: str | None) -> None:
        raise NotImplementedError

    def _emit(self, place: dict[str, Any] | None) -> None:
        place = place or {}
        parsed = parse_address_components(place.get("address_components"))
        location = (place.get("geometry") or {}).get("location")
        if location is not None:
            lat = location.get("lat") if isinstance(location, dict) else getattr(location, "lat", None)
            lng = location.get("lng") if isinstance(location, dict) else getattr(location, "lng", None)
            parsed = PlaceResolved(
                city=parsed.city,
                state=parsed.state,
                postal_code=parsed.postal_code,
                street=parsed.street,
                lat=_coordinate(lat),
                lng=_coordinate(lng),
            )
        for listener in list(self._listeners):
            listener(parsed)


class PlaceAutocompleteAssist(AddressAssist):
    """Current provider API: an autocomplete element emitting place predictions."""

    def __init__(self, provider: Any, country_code: str | None) -> None:
        super().__init__()
        self.element = provider.places.PlaceAutocompleteElement()
        self.element.included_primary_types = ["geocode"]
        self.set_country(country_code)
        self.element.add_listener("gmp-select", self._on_select)
        self.element.add_listener("gmp-error", self._on_error)

    def set_country(self, country_code: str | None) -> None:
        self.element.included_region_codes = [country_code] if country_code else None

    async def _on_select(self, event: dict[str, Any]) -> None:
        prediction = event.get("placePrediction")
        if prediction is None:
            return
        try:
            place = prediction.to_place()
            await place.fetch_fields(fields=["addressComponents", "location"])
        except Exception as exc:
            logger.error("Place details lookup failed", extra={"error": str(exc)})
            return
        location = place.location
        self._emit(
            {
                "address_components": place.address_components,
                "geometry": {"location": location} if location is not None else {},
            }
        )

    def _on_error(self, event: dict[str, Any]) -> None:
        message = str(event.get("error", ""))
        if "Invalid included_primary_types" in message:
            self.element.included_primary_types = None
        logger.error("Place autocomplete error", extra={"error": message})


class LegacyAutocompleteAssist(AddressAssist):
    """Legacy provider API: an Autocomplete bound to the street input."""

    def __init__(self, provider: Any, country_code: str | None) -> None:
        super().__init__()
        self.autocomplete = provider.places.Autocomplete(
            fields=["address_components", "geometry"],
            component_restrictions=self._restrictions(country_code),
        )
        self.autocomplete.add_listener("place_changed", self._on_place_changed)

    @staticmethod
    def _restrictions(country_code: str | None) -> dict[str, str] | None:
        return {"country": country_code} if country_code else None

    def set_country(self, country_code: str | None) -> None:
        self.autocomplete.set_component_restrictions(self._restrictions(country_code))

    def _on_place_changed(self) -> None:
        self._emit(self.autocomplete.get_place())


def select_address_assist(provider: Any, country_code: str | None) -> AddressAssist:
    """Pick the autocomplete variant the loaded provider supports."""

    places = getattr(provider, "places", None)
    if places is not None and hasattr(places, "PlaceAutocompleteElement"):
        return PlaceAutocompleteAssist(provider, country_code)
    return LegacyAutocompleteAssist(provider, country_code)


@dataclass
class AddressAssistContext:
    """Widget handles owned by one checkout form."""

    provider: Any = None
    assist: AddressAssist | None = None
    map: Any = None
    marker: Any = None
    map_id: str = ""
    unsubscribers: list[Callable[[], None]] = field(default_factory=list)

    @property
    def loaded(self) -> bool:
        return self.provider is not None

    def set_marker(self, lat: float, lng: float) -> None:
        if self.map is None:
            return
        if self.marker is not None:
            self.marker.remove()
        advanced = getattr(getattr(self.provider, "marker", None), "AdvancedMarkerElement", None)
        if advanced is not None and self.map_id:
            self.marker = advanced(map=self.map, position={"lat": lat, "lng": lng})
        else:
            self.marker = self.provider.Marker(map=self.map, position={"lat": lat, "lng": lng})

    def close(self) -> None:
        for unsubscribe in self.unsubscribers:
            unsubscribe()
        self.unsubscribers.clear()


async def setup_address_assist(
    backend: Any,
    loader: ProviderLoader,
    country_code: str | None,
    on_place_resolved: PlaceListener,
    enable_map: bool = True,
    context: AddressAssistContext | None = None,
) -> AddressAssistContext | None:
    """Wire autocomplete (and optionally the map picker) for one form.

    Returns ``None`` when no maps key is configured, in which case checkout
    simply proceeds without address assistance.
    """

    maps_key = await backend.fetch_maps_key()
    if maps_key is None:
        logger.info("Maps key not configured; address assist disabled")
        return None

    context = context or AddressAssistContext()
    if not context.loaded:
        try:
            context.provider = await loader(maps_key.key)
        except Exception as exc:
            logger.warning("Maps provider failed to load", extra={"error": str(exc)})
            return None

    assist = select_address_assist(context.provider, country_code)
    context.assist = assist
    context.unsubscribers.append(assist.on_place_resolved(on_place_resolved))

    if enable_map:
        context.map_id = maps_key.map_id or ""
        options: dict[str, Any] = {
            "center": {"lat": DEFAULT_MAP_CENTER[0], "lng": DEFAULT_MAP_CENTER[1]},
            "zoom": DEFAULT_MAP_ZOOM,
            "disable_default_ui": True,
        }
        if context.map_id:
            options["map_id"] = context.map_id
        context.map = context.provider.Map(**options)

        def follow_place(place: PlaceResolved) -> None:
            if place.lat is None or place.lng is None:
                return
            context.map.set_center({"lat": place.lat, "lng": place.lng})
            context.map.set_zoom(PLACE_ZOOM)
            context.set_marker(place.lat, place.lng)

        def on_map_click(lat: float, lng: float) -> None:
            context.set_marker(lat, lng)
            on_place_resolved(PlaceResolved(lat=lat, lng=lng))

        context.unsubscribers.append(assist.on_place_resolved(follow_place))
        context.map.add_listener("click", on_map_click)

    return context
