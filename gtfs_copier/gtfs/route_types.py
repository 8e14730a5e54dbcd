"""Collapse extended route types into the basic GTFS values."""

TRAM = 0
SUBWAY = 1
RAIL = 2
BUS = 3
FERRY = 4
CABLE_TRAM = 5
AERIAL_LIFT = 6
FUNICULAR = 7
TROLLEYBUS = 11
MONORAIL = 12

# Exact extended codes whose basic type differs from their hundred's group.
_EXACT = {
    405: MONORAIL,
    907: CABLE_TRAM,
}

# Extended hundreds group -> basic type.
_GROUPS = {
    100: RAIL,  # railway
    200: BUS,  # coach
    300: RAIL,  # suburban railway
    400: SUBWAY,  # urban railway
    500: SUBWAY,  # metro
    600: SUBWAY,  # underground
    700: BUS,
    800: TROLLEYBUS,
    900: TRAM,
    1000: FERRY,  # water transport
    1200: FERRY,
    1300: AERIAL_LIFT,
    1400: FUNICULAR,
}


def basic_route_type(route_type: int) -> int:
    """
    Return the basic route type for an extended one.

    Basic types, and extended types without a basic equivalent (air service,
    taxi, miscellaneous), are returned unchanged.
    """
    if route_type < 100:
        return route_type
    if route_type in _EXACT:
        return _EXACT[route_type]
    return _GROUPS.get(route_type // 100 * 100, route_type)
