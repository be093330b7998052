from proposal_agent.gates.audit import (
    DEFAULT_IMPROVEMENTS,
    extract_improvements,
    needs_revision,
    parse_evaluation_score,
)

SPANISH_AUDIT = """# Evaluación
| Criterio | Puntaje |
| :--- | :--- |
| ***Nota:***|  78 |

## Mejoras Críticas Necesarias
| Prioridad | Debilidad | Sugerencia |
| :--- | :--- | :--- |
| **CRÍTICO** | Sin KPIs | Definir metas |
"""

CLEAN_AUDIT = """# Evaluation
| ***Nota:*** | 95 |

## Improvements
| **RECOMMENDED** | Add a glossary | Optional |
"""


def test_score_is_read_from_nota_row():
    assert parse_evaluation_score(SPANISH_AUDIT) == 78
    assert parse_evaluation_score(CLEAN_AUDIT) == 95


def test_missing_score_is_zero():
    assert parse_evaluation_score("# No table here") == 0
    assert parse_evaluation_score("") == 0


def test_critical_row_is_detected():
    improvements = extract_improvements(SPANISH_AUDIT)
    assert improvements.has_critical is True
    assert "Sin KPIs" in improvements.text


def test_recommended_only_is_not_critical():
    assert extract_improvements(CLEAN_AUDIT).has_critical is False


def test_missing_section_falls_back_to_default_text():
    improvements = extract_improvements("| ***Nota:*** | 99 |")
    assert improvements.text == DEFAULT_IMPROVEMENTS
    assert improvements.has_critical is False


def test_needs_revision():
    assert needs_revision(SPANISH_AUDIT) is True
    assert needs_revision(CLEAN_AUDIT) is False
    assert needs_revision(CLEAN_AUDIT.replace("95", "89")) is True


def test_empty_improvements_section_has_no_critical():
    assert extract_improvements("| ***Nota:*** | 80 |\n## Improvements\n").has_critical is False


def test_critical_detection_is_case_sensitive():
    assert extract_improvements("## Improvements\n| critical | lower case |").has_critical is False
    assert extract_improvements("## Improvements\n| CRITICAL | upper case |").has_critical is True
