"""
Static assets cached at install time.

Changing any of these files requires bumping ``CACHE_VERSION`` so that the
previous cache is dropped on activation.
"""

ICON_SIZES = (72, 96, 128, 144, 152, 192, 384, 512)

FONT_FILES = (
    "/fonts/Aeonik-Regular.woff2",
    "/fonts/Aeonik-Medium.woff2",
    "/fonts/Aeonik-Bold.woff2",
)


def build_manifest(offline_url: str = "/offline.html") -> tuple[str, ...]:
    """Paths fetched verbatim by the install step."""
    return (
        "/",
        "/index.html",
        offline_url,
        "/manifest.json",
        "/favicon.ico",
        *(f"/icons/icon-{size}x{size}.png" for size in ICON_SIZES),
        # Main stylesheet and script
        "/index.css",
        "/src/main.tsx",
        *FONT_FILES,
    )


OFFLINE_ASSETS = build_manifest()
