"""
Semantic annotation block of a pass.

Semantic tags give the device machine-readable meaning for what the
visible fields show (flight numbers, seats, venue details). The tag
taxonomy is large and additive; only the commonly used tags are typed
here and any other documented tag is accepted and preserved as-is.

Only Wi-Fi network entries carry validation rules.
"""

from __future__ import annotations

from enum import Enum
from typing import List, Optional

from pydantic import ConfigDict, Field

from passkit.app.schemas.base import Timestamp, WalletModel, is_blank


class EventType(str, Enum):
    GENERIC = "PKEventTypeGeneric"
    LIVE_PERFORMANCE = "PKEventTypeLivePerformance"
    MOVIE = "PKEventTypeMovie"
    SPORTS = "PKEventTypeSports"
    CONFERENCE = "PKEventTypeConference"
    CONVENTION = "PKEventTypeConvention"
    WORKSHOP = "PKEventTypeWorkshop"
    SOCIAL_GATHERING = "PKEventTypeSocialGathering"


class SemanticTagCurrencyAmount(WalletModel):
    emit_always = frozenset({"amount", "currency_code"})

    amount: str = ""
    currency_code: str = ""


class SemanticTagLocation(WalletModel):
    emit_always = frozenset({"latitude", "longitude"})

    latitude: float = 0.0
    longitude: float = 0.0


class SemanticTagPersonNameComponents(WalletModel):
    family_name: str = ""
    given_name: str = ""
    middle_name: str = ""
    name_prefix: str = ""
    name_suffix: str = ""
    nickname: str = ""
    phonetic_representation: str = ""


class SemanticTagSeat(WalletModel):
    seat_description: str = ""
    seat_identifier: str = ""
    seat_number: str = ""
    seat_row: str = ""
    seat_section: str = ""
    seat_type: str = ""


class SemanticTagEventDateInfo(WalletModel):
    date_description: str = ""
    is_tentative: bool = False
    original_date: Optional[Timestamp] = None


class SemanticTagWifiNetwork(WalletModel):
    emit_always = frozenset({"ssid", "password"})

    ssid: str = ""
    password: str = ""

    def get_validation_errors(self) -> List[str]:
        if is_blank(self.ssid) or is_blank(self.password):
            return [
                "SemanticTagWifiNetwork: Both ssid and password must be set"
            ]
        return []


class SemanticTags(WalletModel):
    """
    Typed subset of the semantic tag dictionary.

    Undeclared tags are kept as extra keys and serialized verbatim.
    """

    model_config = ConfigDict(extra="allow")

    # Transit
    airline_code: str = ""
    boarding_group: str = ""
    boarding_sequence_number: str = ""
    car_number: str = ""
    confirmation_number: str = ""
    current_arrival_date: Optional[Timestamp] = None
    current_boarding_date: Optional[Timestamp] = None
    current_departure_date: Optional[Timestamp] = None
    departure_airport_code: str = ""
    departure_airport_name: str = ""
    departure_gate: str = ""
    departure_location: Optional[SemanticTagLocation] = None
    departure_platform: str = ""
    departure_station_name: str = ""
    departure_terminal: str = ""
    destination_airport_code: str = ""
    destination_airport_name: str = ""
    destination_gate: str = ""
    destination_location: Optional[SemanticTagLocation] = None
    destination_platform: str = ""
    destination_station_name: str = ""
    destination_terminal: str = ""
    duration: Optional[int] = Field(default=None, ge=0)
    flight_code: str = ""
    flight_number: str = ""
    original_arrival_date: Optional[Timestamp] = None
    original_boarding_date: Optional[Timestamp] = None
    original_departure_date: Optional[Timestamp] = None
    passenger_name: Optional[SemanticTagPersonNameComponents] = None
    priority_status: str = ""
    security_screening: str = ""
    transit_provider: str = ""
    transit_status: str = ""
    transit_status_reason: str = ""
    vehicle_name: str = ""
    vehicle_number: str = ""
    vehicle_type: str = ""

    # Events
    admission_level: str = ""
    album_ids: List[str] = Field(default_factory=list, alias="albumIDs")
    artist_ids: List[str] = Field(default_factory=list, alias="artistIDs")
    attendee_name: str = ""
    event_end_date: Optional[Timestamp] = None
    event_name: str = ""
    event_start_date: Optional[Timestamp] = None
    event_start_date_info: Optional[SemanticTagEventDateInfo] = None
    event_type: Optional[EventType] = None
    genre: str = ""
    performer_names: List[str] = Field(default_factory=list)
    playlist_ids: List[str] = Field(default_factory=list, alias="playlistIDs")
    silence_requested: bool = False
    venue_location: Optional[SemanticTagLocation] = None
    venue_name: str = ""
    venue_phone_number: str = ""
    venue_room: str = ""

    # Sports
    away_team_name: str = ""
    home_team_name: str = ""
    league_name: str = ""
    sport_name: str = ""

    # Commerce
    balance: Optional[SemanticTagCurrencyAmount] = None
    membership_program_name: str = ""
    membership_program_number: str = ""
    total_price: Optional[SemanticTagCurrencyAmount] = None

    seats: List[SemanticTagSeat] = Field(default_factory=list)
    wifi_access: List[SemanticTagWifiNetwork] = Field(default_factory=list)

    def get_validation_errors(self) -> List[str]:
        errors: List[str] = []
        for network in self.wifi_access or []:
            errors.extend(network.get_validation_errors())
        return errors
