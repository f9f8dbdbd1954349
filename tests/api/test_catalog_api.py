"""HTTP tests for catalog browsing and the moderated-content shortcuts."""

import pytest


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


class TestBrowse:

    def test_list_tables(self, client):
        body = client.get("/catalog").json()
        assert body["success"] is True
        names = [t["fullName"] for t in body["data"]]
        assert names == ["DB.SCHEMA.CUSTOMERS", "DB.SCHEMA.ORDERS", "FINANCE.REPORTING.FILINGS"]

    def test_filter_by_database(self, client):
        data = client.get("/catalog", params={"database": "FINANCE"}).json()["data"]
        assert [t["tableName"] for t in data] == ["FILINGS"]

    def test_bad_limit(self, client):
        response = client.get("/catalog", params={"limit": 0})
        assert response.status_code == 400
        assert response.json()["success"] is False

    def test_table_detail(self, client):
        data = client.get("/catalog/DB/SCHEMA/ORDERS").json()["data"]
        assert data["owner"] == "JANE.DOE"
        assert data["tags"] == []
        assert data["rating"] == {"average": None, "count": 0}

    def test_missing_table(self, client):
        response = client.get("/catalog/DB/SCHEMA/NOPE")
        assert response.status_code == 404
        assert response.json()["error"]["kind"] == "not_found"

    def test_columns_and_attributes(self, client):
        columns = client.get("/columns/DB/SCHEMA/ORDERS").json()["data"]
        assert [c["columnName"] for c in columns] == ["ORDER_ID", "STATUS", "REGION"]
        assert columns[0]["isNullable"] == "NO"

        links = client.get("/columns/DB/SCHEMA/ORDERS/attributes").json()["data"]
        assert [(l["columnName"], l["attributeName"]) for l in links] == [("REGION", "sales_region")]

    def test_databases_and_schemas(self, client):
        databases = client.get("/databases").json()["data"]
        assert {d["databaseName"]: d["tableCount"] for d in databases} == {"DB": 2, "FINANCE": 1}

        schemas = client.get("/schemas", params={"database": "DB"}).json()["data"]
        assert [s["schemaName"] for s in schemas] == ["SCHEMA"]

    def test_glossary(self, client):
        attributes = client.get("/attributes").json()["data"]
        assert attributes[0]["name"] == "sales_region"
        assert attributes[0]["usageCount"] == 2

        values = client.get("/attributes/sales_region/enumerations").json()["data"]
        assert [v["valueCode"] for v in values] == ["NA", "EMEA"]

        assert client.get("/attributes/nope/enumerations").status_code == 404


def _link_body(**overrides) -> dict:
    body = {"tableFullName": "DB.SCHEMA.ORDERS", "columnName": "STATUS", "attributeName": "sales_region"}
    body.update(overrides)
    return body


class TestColumnAttributeLinks:

    def test_link_and_unlink(self, client, analyst):
        response = client.post("/columns/link-attribute", json=_link_body(), headers=analyst)
        assert response.status_code == 200
        links = response.json()["data"]
        assert [(l["columnName"], l["linkedBy"]) for l in links] == [("REGION", "SYSTEM"), ("STATUS", "ALICE")]
        assert client.get("/attributes").json()["data"][0]["usageCount"] == 3

        response = client.post("/columns/unlink-attribute", json=_link_body(), headers=analyst)
        assert [l["columnName"] for l in response.json()["data"]] == ["REGION"]
        assert client.get("/attributes").json()["data"][0]["usageCount"] == 2

    def test_public_role_cannot_link(self, client):
        response = client.post("/columns/link-attribute", json=_link_body(), headers={"X-User": "vic"})
        assert response.status_code == 403
        assert client.get("/attributes").json()["data"][0]["usageCount"] == 2

    @pytest.mark.parametrize("overrides", [
        {"columnName": "NOPE"},
        {"attributeName": "nope"},
        {"tableFullName": "DB.SCHEMA.NOPE"},
    ])
    def test_link_unknown_target(self, client, analyst, overrides):
        response = client.post("/columns/link-attribute", json=_link_body(**overrides), headers=analyst)
        assert response.status_code == 404

    def test_unlink_when_not_linked(self, client, analyst):
        response = client.post("/columns/unlink-attribute", json=_link_body(), headers=analyst)
        assert response.status_code == 404

    def test_blank_field(self, client, analyst):
        response = client.post("/columns/link-attribute", json=_link_body(columnName="  "), headers=analyst)
        assert response.status_code == 400


class TestPopularity:

    def test_views_counted(self, client, analyst):
        first = client.post("/popularity/DB/SCHEMA/ORDERS", headers=analyst).json()["data"]
        second = client.post("/popularity/DB/SCHEMA/ORDERS", headers=analyst).json()["data"]
        assert first == {"tableFullName": "DB.SCHEMA.ORDERS", "viewCount": 1}
        assert second["viewCount"] == 2
        assert client.get("/catalog/DB/SCHEMA/ORDERS").json()["data"]["viewCount"] == 2

    def test_sort_by_popularity(self, client, analyst):
        client.post("/popularity/FINANCE/REPORTING/FILINGS", headers=analyst)
        names = [t["tableName"] for t in client.get("/catalog", params={"sort": "popularity"}).json()["data"]]
        assert names == ["FILINGS", "CUSTOMERS", "ORDERS"]

    def test_view_missing_table(self, client, analyst):
        assert client.post("/popularity/DB/SCHEMA/NOPE", headers=analyst).status_code == 404


class TestModeratedShortcuts:

    def test_description_is_proposed_not_written(self, client, analyst, steward):
        assert client.get("/description/DB.SCHEMA.ORDERS").json()["data"] is None

        response = client.put(
            "/description/DB.SCHEMA.ORDERS",
            json={"description": "Customer orders", "justification": "document it"},
            headers=analyst,
        )
        assert response.status_code == 200
        request = response.json()["data"]
        assert request["requestType"] == "DESCRIPTION"
        assert client.get("/description/DB.SCHEMA.ORDERS").json()["data"] is None

        client.put(f"/change-requests/{request['id']}/approve", json={}, headers=steward)
        description = client.get("/description/DB.SCHEMA.ORDERS").json()["data"]
        assert description["description"] == "Customer orders"
        assert description["lastUpdatedBy"] == "ALICE"

        tables = client.get("/catalog", params={"search": "customer orders"}).json()["data"]
        assert [t["fullName"] for t in tables] == ["DB.SCHEMA.ORDERS"]

    def test_tag_add_and_remove(self, client, analyst, steward):
        add = client.post("/tags", headers=analyst, json={
            "tableFullName": "DB.SCHEMA.ORDERS",
            "tagName": "PII",
            "tagValue": "low",
            "justification": "has customer ids",
        }).json()["data"]
        client.put(f"/change-requests/{add['id']}/approve", json={}, headers=steward)

        tags = client.get("/tags/DB/SCHEMA/ORDERS").json()["data"]
        assert [(t["tagName"], t["tagValue"]) for t in tags] == [("PII", "low")]

        removal = client.request(
            "DELETE", f"/tags/{tags[0]['tagId']}", json={"justification": "not pii"}, headers=analyst,
        )
        assert removal.status_code == 200
        assert removal.json()["data"]["requestType"] == "TAG_REMOVE"
        assert len(client.get("/tags/DB/SCHEMA/ORDERS").json()["data"]) == 1

        client.put(f"/change-requests/{removal.json()['data']['id']}/approve", json={}, headers=steward)
        assert client.get("/tags/DB/SCHEMA/ORDERS").json()["data"] == []

    def test_remove_unknown_tag(self, client, analyst):
        response = client.request("DELETE", "/tags/nope", json={"justification": "x"}, headers=analyst)
        assert response.status_code == 404


class TestRatingsAndComments:

    def test_ratings(self, client, analyst, steward):
        client.post("/ratings", json={"table": "DB.SCHEMA.ORDERS", "rating": 2}, headers=analyst)
        client.post("/ratings", json={"table": "DB.SCHEMA.ORDERS", "rating": 4}, headers=analyst)
        response = client.post("/ratings", json={"table": "DB.SCHEMA.ORDERS", "rating": 5}, headers=steward)

        assert response.json()["data"] == {"average": 4.5, "count": 2}
        ratings = client.get("/ratings/DB.SCHEMA.ORDERS").json()["data"]
        assert len(ratings["ratings"]) == 3

    def test_rating_out_of_range(self, client, analyst):
        response = client.post("/ratings", json={"table": "DB.SCHEMA.ORDERS", "rating": 6}, headers=analyst)
        assert response.status_code == 400

    def test_comments(self, client, analyst):
        response = client.post("/comments", json={"table": "DB.SCHEMA.ORDERS", "comment": "useful"}, headers=analyst)
        assert response.json()["data"]["userName"] == "ALICE"

        comments = client.get("/comments/DB.SCHEMA.ORDERS").json()["data"]
        assert [c["commentText"] for c in comments] == ["useful"]

    def test_comment_on_missing_table(self, client, analyst):
        response = client.post("/comments", json={"table": "DB.SCHEMA.NOPE", "comment": "?"}, headers=analyst)
        assert response.status_code == 404


def test_refresh_catalog(client, analyst):
    response = client.post("/refresh-catalog", headers=analyst)
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["tables"] == 3
    assert data["columns"] == 6
