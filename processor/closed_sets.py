"""Closed value sets generated from the Notion calendar schema snapshot."""
from dataclasses import dataclass
from typing import FrozenSet, Optional, Tuple

from schema_guard.guard import SchemaSnapshot, load_snapshot


@dataclass(frozen=True)
class ClosedSet:
    """Allowed option names of one Notion select or multi-select property."""
    property_name: str
    members: FrozenSet[str]

    def is_member(self, value: Optional[str]) -> bool:
        return value is not None and value in self.members

    def coerce(self, value: Optional[str], default: str) -> str:
        """Return the value if it is a member, else the default."""
        return value if self.is_member(value) else default


@dataclass(frozen=True)
class ClosedSets:
    """Every closed set the event record builder validates against."""
    event_types: ClosedSet
    locations: ClosedSet
    organizations: ClosedSet
    projector_statuses: ClosedSet
    sponsor_statuses: ClosedSet
    off_campus_guests: ClosedSet
    logistics_by: ClosedSet
    token_passes: ClosedSet
    token_event_groups: ClosedSet
    funding_statuses: ClosedSet
    tap_statuses: ClosedSet
    booking_statuses: ClosedSet
    csi_statuses: ClosedSet

    @classmethod
    def from_snapshot(cls, snapshot: SchemaSnapshot) -> 'ClosedSets':
        def closed(property_name: str) -> ClosedSet:
            spec = snapshot.store_properties[property_name]
            return ClosedSet(property_name, frozenset(spec.get('options') or ()))

        return cls(
            event_types=closed('Type'),
            locations=closed('Location'),
            organizations=closed('Organizations'),
            projector_statuses=closed('Projector?'),
            sponsor_statuses=closed('Sponsor?'),
            off_campus_guests=closed('Off Campus Guests'),
            logistics_by=closed('Logistics By'),
            token_passes=closed('Token Pass'),
            token_event_groups=closed('Token Event Group'),
            funding_statuses=closed('Funding Status'),
            tap_statuses=closed('TAP Status'),
            booking_statuses=closed('Booking Status'),
            csi_statuses=closed('CSI Form Status')
        )

    @classmethod
    def load(cls) -> 'ClosedSets':
        return cls.from_snapshot(load_snapshot())


# "Where is your event taking place?" answers
ZOOM_ONLY = 'My event is on Zoom'
DISCORD_ONLY = 'My event is on Discord only'
OFF_CAMPUS = 'My event is off campus'
NEED_VENUE = 'I need a venue on campus'
HAVE_VENUE = 'I already have a venue on campus'

REMOTE_LOCATIONS = {
    ZOOM_ONLY: 'Zoom (See Details)',
    DISCORD_ONLY: 'Discord (See Details)',
    OFF_CAMPUS: 'Off Campus',
}

OTHER_LOCATION = 'Other (See Details)'
OFF_CAMPUS_LOCATION = 'Off Campus'
OTHER_EVENT_TYPE = 'Other (See Comments)'

TAP_TODO = 'TAP TODO'
TAP_NA = 'TAP N/A'
BOOKING_TODO = 'Booking TODO'
BOOKING_NA = 'Booking N/A'
CSI_TODO = 'CSI Form TODO'
CSI_NA = 'CSI Form N/A'
FUNDING_TODO = 'Funding TODO'
FUNDING_NOT_REQUESTED = 'Funding Not Requested'

DERIVED_STATUSES: Tuple[Tuple[str, str], ...] = (
    ('tap_statuses', TAP_TODO),
    ('tap_statuses', TAP_NA),
    ('booking_statuses', BOOKING_TODO),
    ('booking_statuses', BOOKING_NA),
    ('csi_statuses', CSI_TODO),
    ('csi_statuses', CSI_NA),
    ('funding_statuses', FUNDING_TODO),
    ('funding_statuses', FUNDING_NOT_REQUESTED),
    ('locations', OTHER_LOCATION),
    ('locations', OFF_CAMPUS_LOCATION),
    ('event_types', OTHER_EVENT_TYPE),
)

# Host form venue choices mapped to Notion calendar Location options
VENUE_LOCATION_TAGS = {
    'Qualcomm Room (Price Center West 2nd floor)': 'Qualcomm Room',
    'Henry Booker Room (Jacobs Hall 2nd floor)': 'Henry Booker Room',
    'Fung Auditorium (Powell-Focht Bioengineering Hall)': 'Fung Auditorium',
    'CSE 1202': 'CSE 1202',
    'CSE 2154': 'CSE 2154',
    'CSE 4140': 'CSE 4140',
    'CSE B225 (Fishbowl)': 'CSE B225 (Fishbowl)',
    'Room 2315 (SME Building)': 'Room 2315',
    'Price Center Eleanor Roosevelt Room': 'PC Eleanor Roosevelt Room',
    'Price Center Marshall Room': 'PC Marshall Room',
    'Price Center Muir Room': 'PC Muir Room',
    'Price Center Warren Room': 'PC Warren Room',
    'Price Center Revelle Room': 'PC Revelle Room',
    'Price Center Red Shoe Room': 'PC Red Shoe Room',
    'Price Center Snake Path Room': 'PC Snake Path Room',
    'Price Center Bear Room': 'PC Bear Room',
    'Price Center Forum': 'PC Forum',
    'Price Center East Ballroom': 'PC East Ballroom',
    'Price Center West Ballroom': 'PC West Ballroom',
    'Student Services Center Multi-Purpose Room': 'Student Services Center Multi-Purpose Room',
    'Student Services Center Conference Room': 'Student Services Center Conference Room',
    'Warren Mall': 'Warren Mall',
    'Warren Bear': 'Warren Bear',
    'Warren College SAC': 'Warren College SAC',
    'Sixth College Lodge': 'Sixth College Lodge',
    'Library Walk': 'Library Walk',
    'Design and Innovation Building 202/208': 'Design and Innovation Building 202/208',
    'Lecture Hall (Please specify in details)': 'Lecture Hall',
}


def venue_location(raw_venue: str) -> Optional[str]:
    """Map a host form venue choice to its Notion location, if known."""
    return VENUE_LOCATION_TAGS.get(raw_venue.strip())
