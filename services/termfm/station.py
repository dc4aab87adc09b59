"""Radio station record as handed to the players by the catalog."""

from dataclasses import dataclass


@dataclass(frozen=True)
class Station:
    """A station with its resolved stream URL.  Immutable once fetched."""

    uuid: str
    name: str
    url: str
    homepage: str = ""
    codec: str = ""
    bitrate: int = 0
    country: str = ""
    tags: tuple[str, ...] = ()

    @property
    def display_name(self) -> str:
        return self.name.strip() or self.url

    @classmethod
    def from_dict(cls, data: dict) -> "Station":
        """Build a Station from a radio-browser JSON record.

        ``url_resolved`` is preferred; playlist URLs in ``url`` (.pls/.m3u)
        only work with engines that follow them.
        """
        tags = data.get("tags") or ""
        try:
            bitrate = int(data.get("bitrate") or 0)
        except (TypeError, ValueError):
            bitrate = 0
        return cls(
            uuid=data.get("stationuuid", ""),
            name=data.get("name", ""),
            url=data.get("url_resolved") or data.get("url", ""),
            homepage=data.get("homepage", ""),
            codec=data.get("codec", ""),
            bitrate=bitrate,
            country=data.get("country", ""),
            tags=tuple(t.strip() for t in tags.split(",") if t.strip()),
        )

    @classmethod
    def from_url(cls, url: str) -> "Station":
        """Ad-hoc station for a bare stream URL (e.g. from a PLAY frame)."""
        return cls(uuid="", name=url, url=url)

    def to_dict(self) -> dict:
        return {
            "id": self.uuid,
            "name": self.display_name,
            "url": self.url,
            "homepage": self.homepage,
            "codec": self.codec,
            "bitrate": self.bitrate,
            "country": self.country,
            "tags": list(self.tags),
        }
