"""
Strava activity -> progress_tracking mapping.

Pure functions, no I/O.
"""

import re
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError


DEFAULT_TIMEZONE = "UTC"

STRAVA_ACTIVITY_TYPES = {
    "Run": "Running",
    "Ride": "Cycling",
    "Swim": "Swimming",
    "Walk": "Walking",
    "Hike": "Hiking",
    "WeightTraining": "Weight Training",
    "Workout": "Workout",
    "Yoga": "Yoga",
    "Crossfit": "CrossFit",
    "Elliptical": "Elliptical",
    "StairStepper": "Stair Climbing",
    "Rowing": "Rowing",
}

# "(GMT-08:00) America/Los_Angeles" -> "America/Los_Angeles"
_TIMEZONE_NAME = re.compile(r"^\s*\([^)]*\)\s*(\S.*?)\s*$")


def map_activity_type(strava_type: str) -> str:
    """Translate Strava's type vocabulary; unknown types pass through."""
    return STRAVA_ACTIVITY_TYPES.get(strava_type, strava_type)


def parse_timezone(strava_timezone: Optional[str]) -> str:
    """
    Extract the IANA zone name from Strava's composite timezone string.

    Falls back to UTC when the string does not have the
    "(GMT±HH:MM) Region/City" shape or names an unknown zone.
    """
    if not strava_timezone:
        return DEFAULT_TIMEZONE

    match = _TIMEZONE_NAME.match(strava_timezone)
    if not match:
        return DEFAULT_TIMEZONE

    name = match.group(1)
    try:
        ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        return DEFAULT_TIMEZONE
    return name


def parse_local_date(start_date_local: str) -> date:
    """
    Calendar date of the activity in the athlete's timezone.

    start_date_local is wall-clock time with a misleading "Z" suffix,
    so only its date part is meaningful.
    """
    return datetime.fromisoformat(start_date_local.replace("Z", "")).date()


@dataclass(frozen=True)
class TrackedActivityData:
    """Values written to a progress_tracking row."""

    strava_activity_id: int
    activity_type: str
    activity_name: Optional[str]
    activity_date: date
    timezone: str
    activity_data: dict[str, Any]
    calories_burned: Optional[int]

    def as_row(self) -> dict[str, Any]:
        return {
            "strava_activity_id": self.strava_activity_id,
            "activity_type": self.activity_type,
            "activity_name": self.activity_name,
            "activity_date": self.activity_date,
            "timezone": self.timezone,
            "activity_data": self.activity_data,
            "calories_burned": self.calories_burned,
        }


def to_tracked_activity(activity: dict[str, Any]) -> TrackedActivityData:
    """
    Map a Strava detailed activity to the values we store.

    Raises:
        KeyError / ValueError: If id, type or start_date_local are missing or malformed
    """
    calories = activity.get("calories")
    return TrackedActivityData(
        strava_activity_id=int(activity["id"]),
        activity_type=map_activity_type(activity["type"]),
        activity_name=activity.get("name"),
        activity_date=parse_local_date(activity["start_date_local"]),
        timezone=parse_timezone(activity.get("timezone")),
        activity_data={
            "source": "strava",
            "strava_id": activity["id"],
            "distance_meters": activity.get("distance"),
            "moving_time_seconds": activity.get("moving_time"),
            "elapsed_time_seconds": activity.get("elapsed_time"),
            "average_heartrate": activity.get("average_heartrate"),
            "max_heartrate": activity.get("max_heartrate"),
            "elevation_gain_meters": activity.get("total_elevation_gain"),
            "average_speed_mps": activity.get("average_speed"),
            "max_speed_mps": activity.get("max_speed"),
            "sport_type": activity.get("sport_type") or activity["type"],
        },
        calories_burned=round(calories) if calories else None,
    )
