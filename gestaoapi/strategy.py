import datetime
from typing import Any, Dict, Iterable, List, Optional


def _percent(part: int, whole: int) -> int:
    # halves round up, as on the dashboard cards
    return (200 * part + whole) // (2 * whole) if whole > 0 else 0


def key_result_situation(
    status: str,
    deadline: Optional[datetime.date],
    today: Optional[datetime.date] = None,
) -> str:
    if status == "CONCLUIDO":
        return "FINALIZADO"
    today = today or datetime.date.today()
    if deadline is not None and deadline < today:
        return "EM_ATRASO"
    return "NO_PRAZO"


def okr_stats(key_results: Iterable[Dict[str, Any]]) -> Dict[str, int]:
    key_results = list(key_results)
    total = len(key_results)
    concluido = len([kr for kr in key_results if kr["status"] == "CONCLUIDO"])
    return {
        "total": total,
        "concluido": concluido,
        "em_andamento": len([kr for kr in key_results if kr["status"] == "EM_ANDAMENTO"]),
        "a_iniciar": len([kr for kr in key_results if kr["status"] == "NAO_INICIADO"]),
        "progresso": _percent(concluido, total),
    }


def sprint_stats(controls: Iterable[Dict[str, Any]]) -> Dict[str, int]:
    controls = list(controls)
    # every row with planned tasks counts towards the backlog
    backlog = len([c for c in controls if (c.get("backlog_tasks") or "").strip()])
    concluido = len([c for c in controls if c["progress"] == "FEITO"])
    return {
        "backlog": backlog,
        "em_fila": len([c for c in controls if c["sprint_status"] == "FORA_SPRINT"]),
        "concluido": concluido,
        "sprint_atual": len([c for c in controls if c["sprint_status"] == "SPRINT_ATUAL"]),
        "progresso": _percent(concluido, backlog),
    }


def objective_breakdown(
    objectives: Iterable[Dict[str, Any]], key_results: Iterable[Dict[str, Any]]
) -> List[Dict[str, Any]]:
    key_results = list(key_results)
    breakdown = []
    for objective in objectives:
        statuses = [kr["status"] for kr in key_results if kr["objective_id"] == objective["id"]]
        breakdown.append(
            {
                "name": objective["code"],
                "concluido": statuses.count("CONCLUIDO"),
                "em_andamento": statuses.count("EM_ANDAMENTO"),
                "nao_iniciado": statuses.count("NAO_INICIADO"),
            }
        )
    return breakdown


def situation_counts(key_results: Iterable[Dict[str, Any]]) -> Dict[str, int]:
    situations = [kr["situation"] for kr in key_results]
    return {
        "no_prazo": situations.count("NO_PRAZO"),
        "finalizado": situations.count("FINALIZADO"),
        "em_atraso": situations.count("EM_ATRASO"),
    }
