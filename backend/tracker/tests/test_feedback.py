"""
Tests for feedback endpoints.
"""


def test_feedback_crud(client):
    response = client.post("/api/feedback", json={"content": "  Add a dark mode  "})
    assert response.status_code == 201
    entry = response.json()
    assert entry["content"] == "Add a dark mode"
    assert entry["images"] == []
    
    response = client.put(f"/api/feedback/{entry['id']}", json={
        "content": "Add a dark mode please",
        "images": [{"url": "/static/shot.png"}],
    })
    assert response.status_code == 200
    assert response.json()["images"] == [{"url": "/static/shot.png"}]
    
    client.post("/api/feedback", json={"content": "Export to CSV"})
    listed = client.get("/api/feedback").json()
    assert len(listed) == 2
    
    assert client.delete(f"/api/feedback/{entry['id']}").status_code == 200
    assert [item["content"] for item in client.get("/api/feedback").json()] == ["Export to CSV"]


def test_feedback_content_required(client):
    response = client.post("/api/feedback", json={"content": "   "})
    assert response.status_code == 400
    assert response.json()["detail"]["fields"] == ["content"]
    
    response = client.post("/api/feedback", json={})
    assert response.status_code == 400


def test_feedback_unknown_id(client):
    assert client.put("/api/feedback/missing", json={"content": "x"}).status_code == 404
    assert client.delete("/api/feedback/missing").status_code == 404
