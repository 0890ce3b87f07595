"""
Read-only capacity diagnostics for a shift.

Demand comes from the class-load definitions (turma_cargas) of the shift's
classes; supply comes from the active professors of the shift. Nothing
here writes to the database.
"""

from collections import defaultdict
from typing import List

from sqlalchemy import func
from sqlalchemy.orm import Session

from database import (
    TurmaCarga, Turma, Disciplina, Professor, Modulacao, Disponibilidade, GradeSlot,
)
from services.errors import require_turno
from services import time_grid
from services.grade import draft_store

STATUS_OK = "OK"
STATUS_SURPLUS = "SURPLUS"
STATUS_DEFICIT = "DEFICIT"


def _status(gap: int) -> str:
    if gap == 0:
        return STATUS_OK
    return STATUS_SURPLUS if gap > 0 else STATUS_DEFICIT


def _class_loads(db: Session, escola_id: int, turno: str):
    return db.query(TurmaCarga, Turma, Disciplina) \
        .join(Turma, Turma.id == TurmaCarga.turma_id) \
        .join(Disciplina, Disciplina.id == TurmaCarga.disciplina_id) \
        .filter(
            TurmaCarga.escola_id == escola_id,
            Turma.escola_id == escola_id,
            Disciplina.escola_id == escola_id,
            func.lower(Turma.turno) == turno,
        ).all()


def compute_shift_diagnostic(db: Session, escola_id: int, turno: str) -> dict:
    """
    Compares required subject-hours (demand) with offered hours (supply).

    Returns:
        dict: {
            "turno": str,
            "resumo_por_disciplina": [{disciplina_id, disciplina_nome, demand, supply,
                                       active_teacher_count, gap, status}],
            "detalhe_por_turma": [{turma_id, turma_nome, disciplina_id, disciplina_nome, carga}],
        }
        Subjects are ordered by name; the breakdown by class then subject name.
    """
    turno = require_turno(turno)
    loads = _class_loads(db, escola_id, turno)

    demand = defaultdict(int)
    names = {}
    detalhe = []
    for tc, turma, disc in loads:
        carga = tc.carga or 0
        demand[disc.id] += carga
        names[disc.id] = disc.nome
        detalhe.append({
            "turma_id": turma.id,
            "turma_nome": turma.nome,
            "disciplina_id": disc.id,
            "disciplina_nome": disc.nome,
            "carga": carga,
        })
    detalhe.sort(key=lambda d: (d["turma_nome"], d["disciplina_nome"], d["turma_id"], d["disciplina_id"]))

    supply_rows = db.query(
        Professor.disciplina_id,
        func.count(Professor.id),
        func.coalesce(func.sum(Professor.aulas), 0),
    ).filter(
        Professor.escola_id == escola_id,
        Professor.status == "ativo",
        func.lower(Professor.turno) == turno,
        Professor.disciplina_id.isnot(None),
    ).group_by(Professor.disciplina_id).all()
    supply = {disc_id: (int(count), int(total)) for disc_id, count, total in supply_rows}

    resumo = []
    for disc_id in sorted(demand, key=lambda d: (names[d], d)):
        count, offered = supply.get(disc_id, (0, 0))
        gap = offered - demand[disc_id]
        resumo.append({
            "disciplina_id": disc_id,
            "disciplina_nome": names[disc_id],
            "demand": demand[disc_id],
            "supply": offered,
            "active_teacher_count": count,
            "gap": gap,
            "status": _status(gap),
        })

    return {"turno": turno, "resumo_por_disciplina": resumo, "detalhe_por_turma": detalhe}


def check_assignments_vs_demand(db: Session, escola_id: int, turno: str) -> dict:
    """Modulation hours per (class, subject) against the class-load demand."""
    turno = require_turno(turno)
    errors, warnings = [], []

    demanda = {(tc.turma_id, tc.disciplina_id): tc.carga or 0
               for tc, _, _ in _class_loads(db, escola_id, turno)}
    turma_ids = [tid for (tid,) in db.query(Turma.id).filter(
        Turma.escola_id == escola_id, func.lower(Turma.turno) == turno).all()]

    atribuido = defaultdict(int)
    professores = set()
    if turma_ids:
        for m in db.query(Modulacao).filter(
                Modulacao.escola_id == escola_id,
                Modulacao.turma_id.in_(turma_ids)).all():
            atribuido[(m.turma_id, m.disciplina_id)] += m.aulas or 0
            professores.add(m.professor_id)

    for (turma_id, disc_id), total in sorted(atribuido.items()):
        aulas = demanda.get((turma_id, disc_id))
        if aulas is None:
            errors.append(f"Atribuição sem demanda: turma {turma_id}, disciplina {disc_id}.")
        elif total > aulas:
            errors.append(f"Excedente: turma {turma_id}, disciplina {disc_id} → atribuído {total} > demanda {aulas}.")
        elif total < aulas:
            warnings.append(f"Demanda parcial: turma {turma_id}, disciplina {disc_id} → {total}/{aulas}.")

    for (turma_id, disc_id), aulas in sorted(demanda.items()):
        if (turma_id, disc_id) not in atribuido:
            warnings.append(f"Sem atribuição: turma {turma_id}, disciplina {disc_id} (demanda {aulas}).")

    return {"errors": errors, "warnings": warnings, "stats": {"professores_no_escopo": len(professores)}}


def check_grid_consistency(db: Session, escola_id: int, turno: str) -> dict:
    """
    Consistency report for a shift before publishing.

    Checks:
    - Time grid exists and has no overlapping periods on the same day.
    - Availability overrides only name periods present in the grid.
    - Draft slots sit on existing grid cells.
    - Modulation hours against class-load demand.
    """
    turno = require_turno(turno)
    errors: List[str] = []
    warnings: List[str] = []

    grid = time_grid.get_grid(db, escola_id, turno)
    cells = {(g["dia_semana"], g["periodo_ordem"]) for g in grid}
    if not grid:
        errors.append("Grade temporal (grade_base) não definida para este turno.")

    for o in time_grid.find_overlaps(db, escola_id, turno):
        errors.append(f"Grade temporal possui sobreposição: dia {o['dia_semana']} "
                      f"p{o['periodo_a']}({o['intervalo_a']}) × p{o['periodo_b']}({o['intervalo_b']}).")

    if grid:
        for d in db.query(Disponibilidade).filter(
                Disponibilidade.escola_id == escola_id,
                Disponibilidade.turno == turno).all():
            for item in d.periodos or []:
                if (d.dia_semana, int(item.get("ordem", 0))) not in cells:
                    errors.append(f"Disponibilidade inválida: prof {d.professor_id}, dia {d.dia_semana}, "
                                  f"período {item.get('ordem')} não existe na grade.")

    slots = 0
    draft = draft_store.find_draft(db, escola_id, turno)
    if draft:
        for s in db.query(GradeSlot).filter(GradeSlot.resultado_id == draft.id).all():
            slots += 1
            if grid and (s.dia_semana, s.periodo_ordem) not in cells:
                errors.append(f"Alocação em slot inexistente: turma {s.turma_id}, "
                              f"dia {s.dia_semana}, período {s.periodo_ordem}.")

    demanda = check_assignments_vs_demand(db, escola_id, turno)
    errors.extend(demanda["errors"])
    warnings.extend(demanda["warnings"])

    return {
        "errors": errors,
        "warnings": warnings,
        "stats": {"periodos_totais": len(grid), "slots_rascunho": slots, **demanda["stats"]},
    }
