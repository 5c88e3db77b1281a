"""
Connect Resources

Thin wrappers over the session pass-throughs. Each one performs a single
parameterized request against a logical ``proxy/...`` path and returns the
parsed body (JSON when the service answered JSON, raw text otherwise).
"""

from datetime import date as Date
from pathlib import Path
from typing import Any

from .exceptions import ConnectException

USER_SETTINGS = "proxy/userprofile-service/userprofile/user-settings/"
SOCIAL_PROFILE = "proxy/userprofile-service/socialProfile"
DEVICES = "proxy/device-service/deviceregistration/devices"
DAILY_SLEEP_DATA = "proxy/wellness-service/wellness/dailySleepData"
DAILY_SLEEP = "proxy/wellness-service/wellness/dailySleep"
DAILY_HEART_RATE = "proxy/wellness-service/wellness/dailyHeartRate"
DAILY_SUMMARY_CHART = "proxy/wellness-service/wellness/dailySummaryChart"
ACTIVITIES = "proxy/activitylist-service/activities/search/activities"
NEWS_FEED = "proxy/activitylist-service/activities/subscriptionFeed"
ACTIVITY = "proxy/activity-service/activity"
WEATHER = "proxy/weather-service/weather"
WORKOUTS = "proxy/workout-service/workouts"
WORKOUT = "proxy/workout-service/workout"
ORIGINAL_FILE = "proxy/download-service/files/activity"
EXPORT_FILE = "proxy/download-service/export"

EXPORT_FORMATS = ("tcx", "gpx", "kml", "csv")
DELETE_OVERRIDE = {"x-http-method-override": "DELETE"}


def _date_string(day: Date | str | None) -> str:
    if day is None:
        day = Date.today()
    return day if isinstance(day, str) else day.isoformat()


class ConnectResources:
    """Resource methods mixed into ConnectSession."""

    user_identifier: str | None

    def _require_user(self) -> str:
        if not self.user_identifier:
            raise ConnectException("No user identifier on this session; login first")
        return self.user_identifier

    # User

    async def get_user_settings(self) -> Any:
        return await self.get(USER_SETTINGS)

    async def get_social_profile(self) -> Any:
        return await self.get(f"{SOCIAL_PROFILE}/{self._require_user()}")

    async def get_social_connections(self) -> Any:
        return await self.get(f"{SOCIAL_PROFILE}/{self._require_user()}/connections")

    async def get_device_info(self) -> Any:
        return await self.get(DEVICES)

    # Wellness

    async def get_sleep_data(self, day: Date | str | None = None) -> Any:
        return await self.get(f"{DAILY_SLEEP_DATA}/{self._require_user()}", {"date": _date_string(day)})

    async def get_sleep(self, day: Date | str | None = None) -> Any:
        """Daily sleep summary; not keyed by user."""
        return await self.get(DAILY_SLEEP, {"date": _date_string(day)})

    async def get_heart_rate(self, day: Date | str | None = None) -> Any:
        return await self.get(f"{DAILY_HEART_RATE}/{self._require_user()}", {"date": _date_string(day)})

    async def get_steps(self, day: Date | str | None = None) -> Any:
        return await self.get(f"{DAILY_SUMMARY_CHART}/{self._require_user()}", {"date": _date_string(day)})

    async def set_body_weight(self, weight_kg: float) -> Any:
        """Store body weight; the service expects grams."""
        if not weight_kg or weight_kg <= 0:
            raise ValueError(f"weight must be positive, got {weight_kg!r}")
        return await self.put(USER_SETTINGS, {"userData": {"weight": round(weight_kg * 1000)}})

    # Activities

    async def get_activities(self, start: int = 0, limit: int = 20) -> Any:
        return await self.get(ACTIVITIES, {"start": start, "limit": limit})

    async def get_activity(
        self,
        activity_id: int | str,
        max_chart_size: int | None = None,
        max_polyline_size: int | None = None,
    ) -> Any:
        query = {"maxChartSize": max_chart_size, "maxPolylineSize": max_polyline_size}
        query = {k: v for k, v in query.items() if v is not None}
        return await self.get(f"{ACTIVITY}/{activity_id}/details", query or None)

    async def get_activity_weather(self, activity_id: int | str) -> Any:
        return await self.get(f"{WEATHER}/{activity_id}")

    async def update_activity(self, activity: dict[str, Any]) -> Any:
        activity_id = activity.get("activityId")
        if not activity_id:
            raise ValueError("activity has no activityId")
        return await self.put(f"{ACTIVITY}/{activity_id}", activity)

    async def delete_activity(self, activity_id: int | str) -> Any:
        return await self.post(f"{ACTIVITY}/{activity_id}", headers=DELETE_OVERRIDE)

    async def get_news_feed(self, start: int = 0, limit: int = 20) -> Any:
        return await self.get(NEWS_FEED, {"start": start, "limit": limit})

    async def download_original_activity_data(
        self,
        activity_id: int | str,
        destination_dir: str | Path = ".",
        file_format: str = "zip",
    ) -> Path:
        """Download an activity to disk; ``zip`` is the original upload."""
        if file_format in ("", "zip"):
            path = f"{ORIGINAL_FILE}/{activity_id}"
        elif file_format in EXPORT_FORMATS:
            path = f"{EXPORT_FILE}/{file_format}/activity/{activity_id}"
        else:
            raise ValueError(f"unsupported download format: {file_format!r}")
        return await self.download_blob(destination_dir, path)

    # Workouts

    async def get_workouts(self, start: int = 0, limit: int = 20) -> Any:
        return await self.get(WORKOUTS, {"start": start, "limit": limit})

    async def schedule_workout(self, workout_id: int | str, day: Date | str) -> Any:
        return await self.post(f"proxy/workout-service/schedule/{workout_id}", {"date": _date_string(day)})

    async def delete_workout(self, workout_id: int | str) -> Any:
        return await self.post(f"{WORKOUT}/{workout_id}", headers=DELETE_OVERRIDE)
