"""Rebuild the team and timeline sections of a proposal from its cost plan."""
from __future__ import annotations

import math
import re
from dataclasses import dataclass
from typing import Dict, List

RESPONSIBILITIES = {
    "tech lead": ("Liderazgo técnico y revisión de código", "Technical leadership and code review"),
    "cloud engineer": ("Implementación de infraestructura cloud", "Cloud infrastructure implementation"),
    "devops": ("CI/CD, automatización y monitoreo", "CI/CD, automation and monitoring"),
    "data engineer": ("Pipelines de datos y ETL", "Data pipelines and ETL"),
    "backend": ("Desarrollo de APIs y servicios", "API and service development"),
    "frontend": ("Desarrollo de interfaz de usuario", "User interface development"),
    "data scientist": ("Modelos ML/AI y análisis avanzado", "ML/AI models and advanced analytics"),
    "security": ("Seguridad, compliance y hardening", "Security, compliance and hardening"),
    "qa": ("Testing y aseguramiento de calidad", "Testing and quality assurance"),
    "delivery": ("Gestión de proyecto y stakeholders", "Project and stakeholder management"),
    "sdm": ("Gestión de entrega y coordinación", "Delivery management and coordination"),
}
DEFAULT_RESPONSIBILITY = ("Soporte técnico especializado", "Specialized technical support")

DEFAULT_PHASES = {
    True: [
        ("Fase 1: Inicio", "Kick-off, definición de alcance", "Project Charter"),
        ("Fase 2: Diseño", "Arquitectura, diseño técnico", "Documento de Diseño"),
        ("Fase 3: Desarrollo", "Implementación core", "Código funcional"),
        ("Fase 4: Integración", "Integración y pruebas", "Sistema integrado"),
        ("Fase 5: Validación", "UAT y ajustes", "Aprobación UAT"),
        ("Fase 6: Go-Live", "Despliegue y estabilización", "Sistema en producción"),
        ("Fase 7: Cierre", "Documentación y handover", "Documentación final"),
    ],
    False: [
        ("Phase 1: Initiation", "Kick-off, scope definition", "Project Charter"),
        ("Phase 2: Design", "Architecture, technical design", "Design Document"),
        ("Phase 3: Development", "Core implementation", "Working code"),
        ("Phase 4: Integration", "Integration and testing", "Integrated system"),
        ("Phase 5: Validation", "UAT and adjustments", "UAT Approval"),
        ("Phase 6: Go-Live", "Deployment and stabilization", "Production system"),
        ("Phase 7: Closure", "Documentation and handover", "Final documentation"),
    ],
}

PHASE_LINE = re.compile(r"(?:fase|phase)\s*(\d+)[:\s]*([^\n]+)", re.IGNORECASE)
TIMELINE_TITLES = r"(?:Cronograma|Desglose de Actividades|Timeline|Execution Timeline)"
SECTION_NOT_FOUND = "[Section not found]"


@dataclass
class SyncPreview:
    team_section: str
    wbs_section: str
    original_team_section: str
    original_wbs_section: str


def is_spanish(language: str) -> bool:
    lowered = language.lower()
    return "spanish" in lowered or "español" in lowered


def team_titles(vendor_name: str) -> str:
    vendor = re.escape(vendor_name)
    return rf"(?:Equipo {vendor}|{vendor} Team)"


def responsibility_for_role(role_name: str, spanish: bool) -> str:
    role = role_name.lower()
    for key, (es, en) in RESPONSIBILITIES.items():
        if key in role:
            return es if spanish else en
    return DEFAULT_RESPONSIBILITY[0] if spanish else DEFAULT_RESPONSIBILITY[1]


def team_markdown(cost: Dict, language: str = "Spanish", vendor_name: str = "Nubiral") -> str:
    """Team table without allocations or rates."""
    roles = (cost.get("optimalPlan") or {}).get("roles") or []
    if not roles:
        return ""
    spanish = is_spanish(language)
    section = f"Equipo {vendor_name}" if spanish else f"{vendor_name} Team"
    role_header, duty_header = ("Rol", "Responsabilidad Clave") if spanish else ("Role", "Key Responsibility")

    lines = [f"## 4. {section}", "", f"| {role_header} | {duty_header} |", "|------|-------------------------|"]
    for role in roles:
        lines.append(f"| {role['role']} | {responsibility_for_role(role['role'], spanish)} |")
    return "\n".join(lines) + "\n"


def phases_from_reasoning(reasoning: str, total_weeks: int, spanish: bool) -> List[Dict[str, str]]:
    matches = PHASE_LINE.findall(reasoning or "")
    if len(matches) >= 3:
        label = "Fase" if spanish else "Phase"
        return [
            {
                "name": f"{label} {number}",
                "weeks": f"Sem {index + 1}-{min(index + 2, total_weeks)}",
                "activities": text[:60].strip(),
                "deliverables": "Ver detalle" if spanish else "See details",
            }
            for index, (number, text) in enumerate(matches)
        ]

    defaults = DEFAULT_PHASES[spanish][: max(1, min(total_weeks, len(DEFAULT_PHASES[spanish])))]
    per_phase = math.ceil(total_weeks / len(defaults))
    phases = []
    for index, (name, activities, deliverables) in enumerate(defaults):
        start = index * per_phase + 1
        if start > total_weeks:
            break
        end = min((index + 1) * per_phase, total_weeks)
        phases.append(
            {
                "name": name,
                "weeks": f"Sem {start}" if start == end else f"Sem {start}-{end}",
                "activities": activities,
                "deliverables": deliverables,
            }
        )
    return phases


def wbs_markdown(cost: Dict, language: str = "Spanish") -> str:
    plan = cost.get("optimalPlan") or {}
    total_weeks = int(plan.get("totalWeeks") or 8)
    spanish = is_spanish(language)
    if spanish:
        section, headers, unit = "Cronograma de Ejecución", ("Fase", "Semana", "Actividades Principales", "Entregables"), "semanas"
    else:
        section, headers, unit = "Execution Timeline", ("Phase", "Week", "Main Activities", "Deliverables"), "weeks"

    lines = [
        f"## 5. {section}",
        "",
        f"**{'Duración Total' if spanish else 'Total Duration'}:** {total_weeks} {unit}",
        "",
        "| " + " | ".join(headers) + " |",
        "|------|---------|------------------------|-------------|",
    ]
    for phase in phases_from_reasoning(plan.get("reasoning", ""), total_weeks, spanish):
        lines.append(f"| {phase['name']} | {phase['weeks']} | {phase['activities']} | {phase['deliverables']} |")
    return "\n".join(lines) + "\n"


def replace_proposal_section(markdown: str, section_pattern: str, new_content: str) -> str:
    """Swap the first ``## [n.] <title>`` section for ``new_content``; append when absent."""
    pattern = re.compile(rf"(##\s*\d*\.?\s*{section_pattern}[^#]*?)(?=##\s|\Z)", re.IGNORECASE | re.DOTALL)
    if pattern.search(markdown):
        return pattern.sub(lambda _: new_content + "\n\n", markdown, count=1)
    return markdown + "\n\n" + new_content


def insert_section_expansion(markdown: str, section: str, expansion: str) -> str:
    """Place ``expansion`` right under the heading named ``section``, or append a new section."""
    heading = re.compile(rf"^(#{{1,6}})\s+{re.escape(section)}\s*$", re.IGNORECASE | re.MULTILINE)
    match = heading.search(markdown)
    if match:
        return markdown[: match.end()] + f"\n\n{expansion}\n" + markdown[match.end():]
    return markdown + f"\n\n## {section} (Expanded)\n{expansion}"


def sync_preview(markdown: str, cost: Dict, language: str, vendor_name: str = "Nubiral") -> SyncPreview:
    team = re.search(rf"##\s*\d*\.?\s*{team_titles(vendor_name)}[^#]*", markdown, re.IGNORECASE | re.DOTALL)
    wbs = re.search(r"##\s*\d*\.?\s*(?:Cronograma|Desglose|Timeline|Execution)[^#]*", markdown, re.IGNORECASE | re.DOTALL)
    return SyncPreview(
        team_section=team_markdown(cost, language, vendor_name),
        wbs_section=wbs_markdown(cost, language),
        original_team_section=team.group(0) if team else SECTION_NOT_FOUND,
        original_wbs_section=wbs.group(0) if wbs else SECTION_NOT_FOUND,
    )


def apply_sync(markdown: str, cost: Dict, language: str, vendor_name: str = "Nubiral") -> str:
    updated = replace_proposal_section(markdown, team_titles(vendor_name), team_markdown(cost, language, vendor_name))
    return replace_proposal_section(updated, TIMELINE_TITLES, wbs_markdown(cost, language))
