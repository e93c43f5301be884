"""Action buttons and virtual folders that sit between real playlists in the tree."""

from __future__ import annotations

from typing import List, Optional

from playdeck.models import (
    LIKED_SONGS_PLAYLIST_ID,
    LIKED_SONGS_PLAYLIST_NAME,
    ActionButton,
    BackendKind,
    Device,
    DeviceType,
    Playlist,
)

PERSONAL_TOP_SONGS_TYPE_ID = 1
PERSONAL_TOP_SONGS_NAME = "Weekly Top Songs"
RECOMMENDATIONS_PLAYLIST_ID = "Recommendations"

GENERATE_WEEKLY_TOP_TITLE = f"Generate {PERSONAL_TOP_SONGS_NAME}"
GENERATE_WEEKLY_TOP_TOOLTIP = "Create a playlist from your most productive songs of the week"


class ProviderItems:
    """Builds the non-playlist entries of a playlist tree."""

    def premium_required(self) -> ActionButton:
        return ActionButton(
            id="premium",
            name="Connect Premium",
            tooltip="Connect a premium account to control playback from here",
            command="playdeck.connectSpotify",
        )

    def connect(self) -> ActionButton:
        return ActionButton(
            id="connectspotify",
            name="Connect Spotify",
            tooltip="Connect your account to see your playlists",
            command="playdeck.connectSpotify",
        )

    def dashboard(self) -> ActionButton:
        return ActionButton(
            id="dashboard",
            name="Dashboard",
            tooltip="View your latest music metrics",
            command="playdeck.displayDashboard",
        )

    def web_analytics(self) -> ActionButton:
        return ActionButton(
            id="webanalytics",
            name="See web analytics",
            tooltip="See music analytics in the web app",
            command="playdeck.launchAnalytics",
        )

    def readme(self) -> ActionButton:
        return ActionButton(
            id="readme",
            name="Learn more",
            tooltip="View the README for more information",
            command="playdeck.displayReadme",
        )

    def switch_to_this_device(self, devices: List[Device]) -> Optional[ActionButton]:
        """Offered only while no computer device is listed."""
        if any(device.type is DeviceType.COMPUTER for device in devices):
            return None
        return ActionButton(
            id="switchtothisdevice",
            name="Switch to this device",
            tooltip="Transfer playback to this computer",
            command="playdeck.transferToComputerDevice",
        )

    def active_devices(self, devices: List[Device]) -> ActionButton:
        active = next((device for device in devices if device.is_active), None)
        if active is not None:
            name = f"Listening on {active.name}"
            tooltip = "Click to transfer playback to another device"
        elif devices:
            names = ", ".join(device.name for device in devices)
            name = "Connect to a device"
            tooltip = f"Available devices: {names}"
        else:
            name = "Connect to a device"
            tooltip = "No devices found; launch a player to continue"
        return ActionButton(id="activedevices", name=name, tooltip=tooltip, command="playdeck.connectDevice")

    def switch_to_local(self) -> ActionButton:
        return ActionButton(
            id="switchtoitunes",
            name="Switch to the Music app",
            tooltip="Browse and play your local library",
            command="playdeck.switchToLocal",
        )

    def switch_to_cloud(self) -> ActionButton:
        return ActionButton(
            id="switchtospotify",
            name="Switch to Spotify",
            tooltip="Browse and play your Spotify library",
            command="playdeck.switchToCloud",
        )

    def line_break(self) -> ActionButton:
        return ActionButton(id="linebreak", name="", kind="divider")

    def generate_weekly_top(self) -> ActionButton:
        return ActionButton(
            id="generateweeklytop",
            name=GENERATE_WEEKLY_TOP_TITLE,
            tooltip=GENERATE_WEEKLY_TOP_TOOLTIP,
            command="playdeck.generateWeeklyPlaylist",
        )

    def liked_songs_folder(self) -> Playlist:
        return Playlist(
            id=LIKED_SONGS_PLAYLIST_ID,
            name=LIKED_SONGS_PLAYLIST_NAME,
            backend=BackendKind.CLOUD_WEB,
            tag="liked",
        )

    def recommendations_folder(self) -> Playlist:
        return Playlist(
            id=RECOMMENDATIONS_PLAYLIST_ID,
            name=RECOMMENDATIONS_PLAYLIST_ID,
            backend=BackendKind.CLOUD_WEB,
            tag="recommendations",
        )

    def no_tracks(self) -> ActionButton:
        return ActionButton(id="notracks", name="No tracks found", tooltip="This playlist is empty")

    def loading(self) -> ActionButton:
        return ActionButton(id="loading", name="Loading...", tooltip="Fetching tracks")


__all__ = [
    "ProviderItems",
    "PERSONAL_TOP_SONGS_TYPE_ID",
    "PERSONAL_TOP_SONGS_NAME",
    "RECOMMENDATIONS_PLAYLIST_ID",
]
