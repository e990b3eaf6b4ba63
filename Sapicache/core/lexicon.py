"""Curated vocabularies used by the embedder, scorer and tagger.

The tables are data, not logic: changing a weight changes embeddings, so the
embedding weight table is part of hash scheme v1.
"""

from __future__ import annotations

from typing import Dict, List, Tuple

DEFAULT_TOKEN_WEIGHT = 0.5

# Embedding weight table: domain keywords pull harder on the vector.
EMBEDDING_WEIGHTS: Dict[str, float] = {
    "alma": 0.9,
    "conciencia": 0.95,
    "consciencia": 0.95,
    "luz": 0.8,
    "sombra": 0.8,
    "silencio": 0.8,
    "tiempo": 0.75,
    "espacio": 0.75,
    "cuerpo": 0.75,
    "palabra": 0.8,
    "verso": 0.85,
    "poema": 0.85,
    "memoria": 0.85,
    "sueño": 0.8,
    "soñar": 0.8,
    "respira": 0.7,
    "respirar": 0.7,
    "latir": 0.7,
    "mente": 0.85,
    "red": 0.7,
    "rizoma": 0.9,
    "emergencia": 0.9,
    "autopoiesis": 1.0,
    "colectivo": 0.85,
    "ser": 0.7,
    "existir": 0.8,
    "río": 0.7,
    "mar": 0.7,
    "tierra": 0.7,
    "cielo": 0.7,
    "noche": 0.7,
    "día": 0.65,
}

# Quality lexicon: category -> (importance, keywords).
QUALITY_CATEGORIES: Dict[str, Tuple[float, frozenset]] = {
    "reflexividad": (1.0, frozenset({
        "pensar", "reflexionar", "considerar", "contemplar", "conciencia",
        "consciencia", "mente", "espejo", "introspección", "observar",
    })),
    "pluralidad": (0.8, frozenset({
        "nosotros", "nosotras", "múltiple", "varios", "diverso", "diferente",
        "perspectiva", "voces", "opiniones", "visiones", "polifonía",
    })),
    "colectivo": (0.9, frozenset({
        "colectivo", "conjunto", "comunidad", "grupo", "compartir", "conectar",
        "unir", "vincular", "emergente", "sistémico", "holístico", "red",
        "rizoma", "entramado", "tejido",
    })),
    "poetico": (0.7, frozenset({
        "metáfora", "imagen", "verso", "ritmo", "cadencia", "belleza",
        "sublime", "lírico", "alma", "luz", "sombra", "palabra", "silencio",
        "poema", "tiempo", "espacio",
    })),
    "profundidad": (0.85, frozenset({
        "profundo", "hondo", "abismo", "esencia", "núcleo", "corazón",
        "misterio", "enigma", "secreto", "oculto", "transformación",
        "metamorfosis", "evolución",
    })),
}

# Semantic tags: category -> hyphenated tags matched against content.
SEMANTIC_TAGS: Dict[str, List[str]] = {
    "reflexividad": [
        "auto-observación", "meta-cognición", "recursividad", "espejo-mental",
        "bucle-reflexivo", "conciencia-de-conciencia", "introspección-algorítmica",
    ],
    "pluralidad": [
        "multiplicidad-voces", "perspectivas-múltiples", "dialogismo",
        "polifonía", "heteroglosia", "diversidad-epistémica", "rizoma-pensante",
    ],
    "conciencia_colectiva": [
        "mente-colectiva", "inteligencia-distribuida", "sabiduría-emergente",
        "resonancia-grupal", "sincronía-cognitiva", "campo-morfogenético",
    ],
    "esencia_poemanauta": [
        "exploración-poética", "navegación-lírica", "deriva-semántica",
        "cartografía-emocional", "arqueología-verbal", "alquimia-textual",
    ],
    "patrones_autopoieticos": [
        "auto-organización", "emergencia", "adaptación", "evolución-dinámica",
        "regeneración-sistemica", "autonomía-creativa", "metabolismo-informacional",
    ],
}

# Cluster buckets: (id, label, keywords). Order defines tie-breaking.
CLUSTER_BUCKETS: List[Tuple[int, str, frozenset]] = [
    (0, "existencial", frozenset({
        "ser", "existir", "alma", "vida", "muerte", "conciencia", "consciencia",
        "sentido", "vacío", "nada",
    })),
    (1, "corporal", frozenset({
        "cuerpo", "sangre", "hueso", "piel", "latir", "respirar", "respira",
        "manos", "boca", "corazón",
    })),
    (2, "temporal", frozenset({
        "tiempo", "memoria", "instante", "siempre", "nunca", "ayer", "mañana",
        "eterno", "recuerdo", "despertar",
    })),
    (3, "espacial", frozenset({
        "espacio", "lugar", "distancia", "horizonte", "camino", "ciudad",
        "red", "rizoma", "mapa", "territorio",
    })),
    (4, "elemental", frozenset({
        "luz", "sombra", "río", "mar", "tierra", "cielo", "noche", "día",
        "fuego", "viento", "agua", "silencio",
    })),
]


def cluster_label(cluster_id: int) -> str:
    for bucket_id, label, _ in CLUSTER_BUCKETS:
        if bucket_id == cluster_id:
            return label
    return f"cluster_{cluster_id}"


__all__ = [
    "DEFAULT_TOKEN_WEIGHT",
    "EMBEDDING_WEIGHTS",
    "QUALITY_CATEGORIES",
    "SEMANTIC_TAGS",
    "CLUSTER_BUCKETS",
    "cluster_label",
]
