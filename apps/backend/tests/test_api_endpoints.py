import settings


def test_health_check(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"

def test_missing_school_is_forbidden(client):
    response = client.get("/api/grade/rascunho", params={"turno": "matutino"})
    assert response.status_code == 403
    assert response.json()["code"] == "TENANT"

    response = client.get("/api/turnos", headers={"X-Escola-Id": "abc"})
    assert response.status_code == 403

def test_invalid_payload_is_a_validation_error(client, headers):
    response = client.post("/api/grade/validate-slot", headers=headers,
                           json={"turno": "matutino", "turma_id": 10, "dia": 0, "ordem": 1,
                                 "disciplina_id": 5, "professor_id": 7})
    assert response.status_code == 400
    body = response.json()
    assert body["ok"] is False
    assert body["code"] == "VALIDATION"

def test_turnos_lists_distinct_shifts(client, headers, escola):
    response = client.get("/api/turnos", headers=headers)
    assert response.status_code == 200
    assert response.json() == ["matutino", "noturno"]

def test_validate_slot_answers_200_with_code(client, headers, escola):
    payload = {"turno": "matutino", "turma_id": 10, "dia": 2, "ordem": 1, "disciplina_id": 5, "professor_id": 8}

    response = client.post("/api/grade/validate-slot", headers=headers, json=payload)

    assert response.status_code == 200
    assert response.json()["code"] == "PROFESSOR_NAO_PERMITIDO"

    payload["professor_id"] = 7
    response = client.post("/api/grade/validate-slot", headers=headers, json=payload)
    assert response.json() == {"ok": True}

def test_slot_upsert_rejection_is_409(client, headers, escola):
    payload = {"turno": "matutino", "turma_id": 10, "dia": 2, "ordem": 1, "disciplina_id": 5, "professor_id": 8}

    response = client.post("/api/grade/slot/upsert", headers=headers, json=payload)

    assert response.status_code == 409
    assert response.json()["code"] == "PROFESSOR_NAO_PERMITIDO"

def test_other_school_does_not_see_draft(client, headers, escola):
    payload = {"turno": "matutino", "turma_id": 10, "dia": 2, "ordem": 1, "disciplina_id": 5, "professor_id": 7}
    assert client.post("/api/grade/slot/upsert", headers=headers, json=payload).status_code == 200

    response = client.get("/api/grade/rascunho", params={"turno": "matutino"}, headers={"X-Escola-Id": "2"})
    assert response.json() == {"ok": True, "resultado": None, "slots": []}

def test_publish_without_draft_is_404(client, headers, escola):
    response = client.post("/api/grade/publicar", headers=headers, json={"turno": "matutino"})
    assert response.status_code == 404
    assert response.json()["code"] == "NO_DRAFT"

def test_modulation_endpoints(client, headers, escola):
    response = client.post("/api/modulacao/upsert", headers=headers, json=[
        {"professor_id": 8, "disciplina_id": 5, "turma_id": 11, "aulas": 2},
        {"professor_id": 8, "disciplina_id": 5, "turma_id": 11, "aulas": 4},
        {"professor_id": None, "disciplina_id": 5, "aulas": 1},
    ])
    assert response.status_code == 200
    body = response.json()
    assert body["processed"] == 1
    assert body["rejected"] == [{"index": 2, "reason": "professor_id é obrigatório"}]

    listing = client.get("/api/modulacao", params={"turno": "matutino"}, headers=headers).json()
    assert {"professor_id": 8, "turma_id": 11, "aulas": 4} in [
        {k: a[k] for k in ("professor_id", "turma_id", "aulas")} for a in listing["alocacoes"]
    ]

    response = client.post("/api/modulacao/remover", headers=headers, json={
        "turno": "matutino", "itens": [{"professor_id": 8, "turma_id": 11, "disciplina_id": 5}],
    })
    assert response.json() == {"ok": True, "removed": 1}

    response = client.delete("/api/modulacao/7/10/5", headers=headers)
    assert response.status_code == 204

    response = client.post("/api/modulacao", headers=headers, json=[
        {"professor_id": 7, "disciplina_id": 5, "turma_id": 10, "aulas": 3},
    ])
    assert response.json() == {"ok": True, "processed": 1}

def test_full_flow(client, headers, escola):
    # 1. Time grid
    response = client.put("/api/grade/base", headers=headers, json={"turno": "matutino", "itens": [
        {"dia_semana": 2, "periodo_ordem": 1, "hora_inicio": "07:00", "hora_fim": "07:50"},
        {"dia_semana": 2, "periodo_ordem": 2, "hora_inicio": "07:50", "hora_fim": "08:40"},
    ]})
    assert response.json() == {"ok": True, "affected": 2}

    # 2. Availability: professor 9 unavailable in period 1 on Tuesday
    response = client.post("/api/disponibilidades/upsert", headers=headers, json={
        "professor_id": 9, "turno": "matutino", "dia_semana": 2, "status_padrao": "livre",
        "periodos": [{"ordem": 1, "status": "indisponivel"}],
    })
    assert response.json()["ok"] is True

    # 3. Slots
    slot = {"turno": "matutino", "turma_id": 10, "dia": 2, "ordem": 1, "disciplina_id": 6, "professor_id": 9}
    response = client.post("/api/grade/slot/upsert", headers=headers, json=slot)
    assert response.status_code == 409
    assert response.json()["code"] == "INDISPONIVEL"

    slot.update({"disciplina_id": 5, "professor_id": 7})
    response = client.post("/api/grade/slot/upsert", headers=headers, json=slot)
    assert response.status_code == 200

    cell = {"turno": "matutino", "turma_id": 10, "dia": 2, "ordem": 1}
    response = client.post("/api/grade/slot/lock", headers=headers, json=cell)
    assert response.json()["slot"]["lock_actor"] == "coordenacao"

    response = client.post("/api/grade/slot/move", headers=headers, json={
        "turno": "matutino", "origem": {"turma_id": 10, "dia": 2, "ordem": 1},
        "destino": {"turma_id": 10, "dia": 2, "ordem": 2},
    })
    assert response.status_code == 409
    assert response.json()["code"] == "SLOT_LOCKED"

    client.post("/api/grade/slot/unlock", headers=headers, json=cell)
    response = client.post("/api/grade/slot/move", headers=headers, json={
        "turno": "matutino", "origem": {"turma_id": 10, "dia": 2, "ordem": 1},
        "destino": {"turma_id": 10, "dia": 2, "ordem": 2},
    })
    assert response.status_code == 200

    # 4. Consistency report and publish
    report = client.get("/api/grade/validacao", params={"turno": "matutino"}, headers=headers).json()
    assert report["stats"]["slots_rascunho"] == 1

    response = client.post("/api/grade/publicar", headers=headers, json={"turno": "matutino", "descricao": "v1"})
    assert response.json()["version"] == 1

    published = client.get("/api/grade/publicado", params={"turno": "matutino"}, headers=headers).json()
    assert [(s["dia"], s["ordem"]) for s in published["slots"]] == [(2, 2)]

    response = client.post("/api/grade/slot/remove", headers=headers, json={"turno": "matutino", "turma_id": 10,
                                                                             "dia": 2, "ordem": 2})
    assert response.json()["removed"] == 1
    published = client.get("/api/grade/publicado", params={"turno": "matutino"}, headers=headers).json()
    assert len(published["slots"]) == 1

def test_class_loads_and_diagnostic(client, headers, escola):
    response = client.post("/api/cargas-horarias/definir", headers=headers, json={"turma_id": 10, "itens": [5, 6]})
    assert response.status_code == 200
    assert response.json()["totalCarga"] == 9

    response = client.get("/api/cargas-horarias", params={"turma_id": 10}, headers=headers)
    assert [i["disciplina_nome"] for i in response.json()["itens"]] == ["Matemática", "Português"]

    response = client.post("/api/cargas-horarias/definir", headers=headers, json={"turma_id": 99, "itens": [5]})
    assert response.status_code == 404

    resumo = client.get("/api/horarios/diagnostico", params={"turno": "matutino"}, headers=headers).json()
    assert [(r["disciplina_nome"], r["supply"], r["status"]) for r in resumo["resumo_por_disciplina"]] == [
        ("Matemática", 12, "SURPLUS"),
        ("Português", 10, "SURPLUS"),
    ]

def test_preferences_endpoints(client, headers):
    response = client.get("/api/preferencias", params={"professor_id": 7, "turno": "matutino"}, headers=headers)
    assert response.json()["prefere_aula_dupla"] is False

    response = client.post("/api/preferencias/upsert", headers=headers, json={
        "professor_id": 7, "turno": "matutino", "prefere_aula_dupla": True,
    })
    assert response.json()["ok"] is True
    assert response.json()["prefere_aula_dupla"] is True

def test_grid_report_for_unlisted_shift(client, headers, escola):
    response = client.get("/api/grade/validacao", params={"turno": "tarde"}, headers=headers)
    assert response.status_code == 200
    body = response.json()
    assert body["ok"] is False
    assert body["stats"]["periodos_totais"] == 0
    assert "Grade temporal (grade_base) não definida para este turno." in body["errors"]

def test_gateway_token_is_required_when_configured(client, headers, escola, monkeypatch):
    monkeypatch.setattr(settings, "TENANT_GATEWAY_TOKEN", "segredo-do-gateway")

    response = client.get("/api/turnos", headers=headers)
    assert response.status_code == 403
    assert response.json()["code"] == "TENANT"

    response = client.get("/api/turnos", headers={**headers, "X-Gateway-Token": "outro"})
    assert response.status_code == 403

    response = client.get("/api/turnos", headers={**headers, "X-Gateway-Token": "segredo-do-gateway"})
    assert response.status_code == 200
    assert response.json() == ["matutino", "noturno"]
