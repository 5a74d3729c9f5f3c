"""
Academic departments and the careers offered by each.
"""

from typing import Dict, List

CAREERS_BY_DEPARTMENT: Dict[str, List[str]] = {
    "Ciencias de la Computación": [
        "Ingeniería de Software",
        "Tecnologías de la Información",
    ],
    "Eléctrica, Electrónica y Telecomunicaciones": [
        "Telecomunicaciones",
        "Electrónica y Automatización",
    ],
    "Ciencias de Energía y Mecánica": [
        "Mecánica",
        "Mecatrónica",
    ],
    "Ciencias de la Vida y de la Agricultura": [
        "Agropecuaria",
        "Biotecnología",
    ],
    "Ciencias Económicas Administrativas y de Comercio": [
        "Administración de Empresas",
        "Comercio Exterior",
        "Contabilidad y Auditoría",
        "Mercadotecnia",
        "Turismo",
    ],
    "Ciencias de la Tierra y de la Construcción": [
        "Ingeniería Civil",
        "Ingeniería Geoespacial",
    ],
    "Ciencias Médicas": [
        "Medicina",
    ],
    "Ciencias Humanas y Sociales": [
        "Pedagogía de la Actividad Física y Deporte",
        "Educación Inicial",
    ],
    "Seguridad y Defensa": [
        "Relaciones Internacionales",
    ],
    "Ciencias Exactas": [
        "Formación Básica (Sin carrera de pregrado)",
    ],
}

DEPARTMENTS: List[str] = list(CAREERS_BY_DEPARTMENT)


def careers_for(department: str) -> List[str]:
    return CAREERS_BY_DEPARTMENT.get(department, [])
