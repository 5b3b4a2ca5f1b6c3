from pathlib import Path
import argparse
import xml.etree.ElementTree as ET
import folium
import yaml
from gpx2kml.gpx_utils import read_gpx
from gpx2kml.pipeline import SimplificationConfig, process_tracks

KML_NS = "http://www.opengis.net/kml/2.2"
GX_NS = "http://www.google.com/kml/ext/2.2"
ATOM_NS = "http://www.w3.org/2005/Atom"

# KML colours are aabbggrr
DEFAULT_STYLES = [
    {"id": "red", "color": "C81400FF", "width": 4},
    {"id": "blue", "color": "C8FF7800", "width": 4},
    {"id": "pink", "color": "96F0FF14", "width": 4},
    {"id": "green", "color": "C878FF00", "width": 4},
    {"id": "orange", "color": "C81478FF", "width": 4},
    {"id": "dark_green", "color": "96008C14", "width": 4},
    {"id": "pink2", "color": "C8A078F0", "width": 4},
]

DOCUMENT_DESCRIPTION = "<p>Converted from GPX with <b>gpx2kml</b></p>"


def _sub(parent, tag, text=None, **attrib):
    el = ET.SubElement(parent, tag, attrib=attrib)
    if text is not None:
        el.text = str(text)
    return el


def kml_color_to_hex(color: str) -> str:
    """'C81400FF' (aabbggrr) -> '#ff0014' (rrggbb)."""
    c = color.strip().lstrip("#")
    if len(c) != 8:
        raise ValueError(f"Expected an aabbggrr colour, got {color!r}")
    bb, gg, rr = c[2:4], c[4:6], c[6:8]
    return f"#{rr}{gg}{bb}".lower()


def format_coordinates(points) -> str:
    return "\n".join(f"{p.longitude},{p.latitude},{p.elevation}" for p in points)


def _styles(cfg):
    styles = (cfg.get("kml") or {}).get("styles") or DEFAULT_STYLES
    for s in styles:
        if not s.get("id") or not s.get("color"):
            raise ValueError(f"KML style {s.get('id')!r} needs both an id and a color")
    return styles


def _track_name(track, i: int) -> str:
    if track.title:
        return track.title
    if track.source:
        return Path(track.source).stem
    return f"Track {i + 1}"


def build_kml(tracks, cfg) -> str:
    """Render simplified tracks as a styled KML document, one Placemark per track."""
    kml_cfg = cfg.get("kml") or {}
    styles = _styles(cfg)

    kml = ET.Element("kml", attrib={"xmlns": KML_NS, "xmlns:gx": GX_NS, "xmlns:atom": ATOM_NS})

    doc = _sub(kml, "Document")
    _sub(doc, "name", kml_cfg.get("document_name", "Converted from GPX file"))
    _sub(doc, "description", kml_cfg.get("document_description", DOCUMENT_DESCRIPTION))
    _sub(doc, "visibility", 1)
    _sub(doc, "open", 1)

    for s in styles:
        style = _sub(doc, "Style", id=s["id"])
        line = _sub(style, "LineStyle")
        _sub(line, "color", s["color"])
        _sub(line, "width", s.get("width", 4))

    folder = _sub(doc, "Folder")
    _sub(folder, "name", "Tracks")
    _sub(folder, "description", "A list of tracks")
    _sub(folder, "visibility", 1)
    _sub(folder, "open", 0)

    for i, t in enumerate(tracks):
        pm = _sub(folder, "Placemark")
        _sub(pm, "visibility", 0)
        _sub(pm, "open", 0)
        _sub(pm, "styleUrl", f"#{styles[i % len(styles)]['id']}")
        _sub(pm, "name", _track_name(t, i))
        summary = f"{len(t.points)} points (epsilon {t.epsilon:g}, {t.error_count} invalid waypoints dropped)"
        _sub(pm, "description", f"{t.description}\n{summary}" if t.description else summary)
        ls = _sub(pm, "LineString")
        _sub(ls, "extrude", 1)
        _sub(ls, "tessellate", 1)
        _sub(ls, "altitudeMode", "clampToGround")
        _sub(ls, "coordinates", format_coordinates(t.points))

    return ET.tostring(kml, encoding="utf-8", xml_declaration=True).decode("utf-8")


def write_kml(kml_text: str, out_path: Path) -> Path:
    out_path = Path(out_path)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    out_path.write_text(kml_text, encoding="utf-8")
    return out_path


def build_map(tracks, cfg, out_path: Path) -> Path:
    map_cfg = cfg.get("map") or {}
    styles = _styles(cfg)
    pts = [p for t in tracks for p in t.points]
    if pts:
        center = [sum(p.latitude for p in pts) / len(pts), sum(p.longitude for p in pts) / len(pts)]
    else:
        center = [map_cfg.get("center_lat", 0.0), map_cfg.get("center_lon", 0.0)]
    m = folium.Map(location=center, zoom_start=map_cfg.get("zoom_start", 13))

    routes_fg = folium.FeatureGroup(name="Tracks (simplified)", show=True)
    for i, t in enumerate(tracks):
        if len(t.points) < 2:
            continue
        style = styles[i % len(styles)]
        folium.PolyLine(
            locations=[[p.latitude, p.longitude] for p in t.points],
            color=kml_color_to_hex(style["color"]),
            weight=map_cfg.get("route_weight", style.get("width", 4)),
            tooltip=_track_name(t, i),
        ).add_to(routes_fg)

    routes_fg.add_to(m)
    folium.LayerControl().add_to(m)

    out_path = Path(out_path)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    m.save(str(out_path))
    return out_path


def _gpx_files(value):
    if isinstance(value, str):
        return [s.strip() for s in value.split(",") if s.strip()]
    return [str(v) for v in value or []]


def run(config_path: str = "config.yaml", epsilon=None, gpx_files=None, html=None):
    cfg = yaml.safe_load(Path(config_path).read_text()) or {}
    paths = cfg.get("paths") or {}
    files = _gpx_files(gpx_files if gpx_files else paths.get("gpx_files"))
    if not files:
        raise RuntimeError("No GPX files configured")
    config = SimplificationConfig.from_cfg(cfg, epsilon)

    tracks = []
    for f in files:
        try:
            track = read_gpx(Path(f))
        except (OSError, ValueError) as e:
            print(f"[gpx] skip {f}: {e}")
            continue
        print(f"[gpx] read {len(track.waypoints)} waypoints from {f}")
        tracks.append(track)

    simplified = process_tracks(tracks, config)
    for t in simplified:
        print(f"[simplify] {t.source}: {t.input_count} -> {len(t.points)} points "
              f"(epsilon={t.epsilon:g}, invalid={t.error_count})")

    kml_path = write_kml(build_kml(simplified, cfg), Path(paths.get("kml_output", "kml_output.kml")))
    print(f"[kml] wrote {len(simplified)} tracks -> {kml_path}")

    if html is None:
        html = bool(paths.get("map_html"))
    if html:
        map_path = build_map(simplified, cfg, Path(paths.get("map_html") or "track_map.html"))
        print(f"[map] wrote preview -> {map_path}")
    return simplified


def main():
    parser = argparse.ArgumentParser(description="Simplify GPX tracks and convert them to KML")
    parser.add_argument("--config", default="config.yaml", help="Path to the YAML config (default: config.yaml)")
    parser.add_argument("--epsilon", type=float, help="Simplification tolerance in degrees (overrides config)")
    parser.add_argument("--gpx", action="append", help="GPX file to convert; repeat for several tracks")
    parser.add_argument("--html", action=argparse.BooleanOptionalAction, default=None,
                        help="Also write the folium map preview")
    args = parser.parse_args()
    run(config_path=args.config, epsilon=args.epsilon, gpx_files=args.gpx, html=args.html)

if __name__ == "__main__":
    main()
