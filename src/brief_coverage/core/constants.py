from __future__ import annotations

COMMON_EXCLUDES = [  # off-topic terms subtracted for every portfolio
    "celebrity", "entertainment", "music", "movie", "gaming", "sports", "lottery", "horoscope",
]

KEYWORD_MAP: dict[str, list[str]] = {  # portfolio -> ordered relevance keywords
    "rigs-integrated-drilling": [
        "rig", "dayrate", "tender", "jack-up", "jackup", "semisub", "drillship", "MODU",
        "rig count", "utilization", "BOP", "well control",
    ],
    "drilling-services": [
        "directional", "MWD", "LWD", "mud logging", "drilling fluids", "cementing",
        "drill bit", "BHA", "fishing", "wellsite geology",
    ],
    "wells-materials-octg": [
        "OCTG", "casing", "tubing", "line pipe", "CRA", "alloy", "premium connection",
        "wellhead", "valves", "flanges", "fittings", "NACE",
    ],
    "subsea-surf-offshore": [
        "subsea", "SURF", "umbilical", "riser", "flowline", "FPSO", "installation vessel",
        "pipelay", "tieback", "offshore",
    ],
    "logistics-marine-aviation": [
        "OSV", "PSV", "AHTS", "helicopter", "charter", "freight", "shipping", "port",
        "supply base", "vessel",
    ],
    "it-telecom-cyber": [
        "cybersecurity", "ransomware", "OT security", "telecom", "satellite", "SCADA",
        "cloud", "data center", "network", "breach",
    ],
}

PRIMARY_OVERRIDES: dict[str, list[str]] = {  # explicit primary terms, otherwise first four keywords
    "rigs-integrated-drilling": ["rig", "dayrate", "drillship", "utilization"],
    "drilling-services": ["directional", "MWD", "cementing", "drilling fluids"],
    "wells-materials-octg": ["OCTG", "casing", "tubing", "wellhead"],
    "subsea-surf-offshore": ["subsea", "SURF", "FPSO", "umbilical"],
}

PORTFOLIO_EXCLUDES: dict[str, list[str]] = {  # layered on top of COMMON_EXCLUDES
    "rigs-integrated-drilling": ["fitness rig", "camera rig"],
    "logistics-marine-aviation": ["cruise", "airline lounge"],
    "it-telecom-cyber": ["video game", "nintendo", "playstation"],
}

PORTFOLIO_LABELS: dict[str, str] = {
    "rigs-integrated-drilling": "Rigs & Integrated Drilling",
    "drilling-services": "Drilling Services",
    "wells-materials-octg": "Wells Materials & OCTG",
    "subsea-surf-offshore": "Subsea, SURF & Offshore",
    "logistics-marine-aviation": "Logistics, Marine & Aviation",
    "it-telecom-cyber": "IT, Telecom & Cyber",
}

REGION_SEARCH_LOCALE = {  # aggregator search locale per region
    "au": "hl=en-AU&gl=AU&ceid=AU:en",
    "us-mx-la-lng": "hl=en-US&gl=US&ceid=US:en",
}

PORTFOLIO_SOURCES: dict[str, dict[str, list[dict[str, str]]]] = {  # direct publisher feeds
    "rigs-integrated-drilling": {
        "au": [{"name": "Offshore Energy", "url": "https://www.offshore-energy.biz/feed/", "kind": "rss"}],
        "us-mx-la-lng": [
            {"name": "Offshore Energy", "url": "https://www.offshore-energy.biz/feed/", "kind": "rss"},
            {"name": "Rigzone", "url": "https://www.rigzone.com/news/rss/rigzone_latest.aspx", "kind": "rss"},
        ],
    },
    "drilling-services": {
        "us-mx-la-lng": [
            {"name": "Drilling Contractor", "url": "https://drillingcontractor.org/feed", "kind": "rss"},
        ],
    },
    "subsea-surf-offshore": {
        "au": [{"name": "Energy News Bulletin", "url": "https://www.energynewsbulletin.net/", "kind": "web"}],
        "us-mx-la-lng": [{"name": "Offshore Magazine", "url": "https://www.offshore-mag.com/rss", "kind": "rss"}],
    },
    "it-telecom-cyber": {
        "au": [{"name": "iTnews", "url": "https://www.itnews.com.au/RSS/rss.ashx", "kind": "rss"}],
        "us-mx-la-lng": [{"name": "The Record", "url": "https://therecord.media/feed", "kind": "rss"}],
    },
}

ARTICLES_PER_RUN = 3  # selected articles per brief
