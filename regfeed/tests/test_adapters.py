"""Source adapter tests against mock transports"""

import base64
import json

import httpx
import pytest

from conftest import RecordingTransport, sequence_handler
from regfeed.core.errors import SourceErrorType
from regfeed.ingestion.base import SourceFilter
from regfeed.ingestion.cdc import CDCAdapter
from regfeed.ingestion.epa import EPAAdapter
from regfeed.ingestion.fda import FDAAdapter
from regfeed.ingestion.fsis import FSISAdapter
from regfeed.ingestion.regulations_gov import RegulationsGovAdapter
from regfeed.ingestion.rss import parse_feed
from regfeed.resilience.config import AuthConfig

RSS_URL = "https://feeds.example.test/feed.rss"


def rss(*items):
    body = "".join(
        "<item>"
        + "".join(f"<{tag}>{value}</{tag}>" for tag, value in item.items())
        + "</item>"
        for item in items
    )
    return (
        '<?xml version="1.0" encoding="UTF-8"?>'
        f'<rss version="2.0"><channel><title>Test</title>{body}</channel></rss>'
    )


def make(adapter_cls, fast_config, clock, fixed_now, handler, **kwargs):
    transport = RecordingTransport(handler)
    adapter = adapter_cls(
        fast_config,
        transport=transport,
        clock=clock,
        sleep=clock.sleep,
        now=fixed_now,
        **kwargs,
    )
    return adapter, transport


class TestFDAAdapter:
    """openFDA query building and envelope handling"""

    @pytest.mark.asyncio
    async def test_search_query_format(self, fast_config, clock, fixed_now):
        adapter, transport = make(
            FDAAdapter, fast_config, clock, fixed_now, sequence_handler([httpx.Response(200, json={"results": []})])
        )
        async with adapter:
            await adapter.fetch(SourceFilter(days=7, program="food", limit=10, keyword="ice cream", state="ca"))

        [request] = transport.requests
        assert request.url.path == "/food/enforcement.json"
        search = request.url.params["search"]
        assert search.startswith("recall_initiation_date:[20240608 TO 20240615]")
        assert 'product_description:"ice cream"' in search
        assert 'state:"CA"' in search
        assert request.url.params["limit"] == "10"
        assert request.url.params["sort"] == "recall_initiation_date:desc"
        assert "skip" not in request.url.params

    @pytest.mark.asyncio
    async def test_event_endpoint_uses_its_date_field(self, fast_config, clock, fixed_now):
        adapter, transport = make(
            FDAAdapter, fast_config, clock, fixed_now, sequence_handler([httpx.Response(200, json={"results": []})])
        )
        async with adapter:
            await adapter.fetch(SourceFilter(program="drug_event"))
        assert transport.requests[0].url.params["search"].startswith("receivedate:[")

    @pytest.mark.asyncio
    async def test_drug_shortage_request_and_records(self, fast_config, clock, fixed_now):
        shortage = {
            "package_ndc": "0409-4888-02",
            "generic_name": "Lidocaine Hydrochloride Injection",
            "status": "Current",
            "shortage_reason": "Demand increase for the drug",
            "initial_posting_date": "03/01/2024",
            "update_date": "06/10/2024",
        }
        adapter, transport = make(
            FDAAdapter, fast_config, clock, fixed_now, sequence_handler([httpx.Response(200, json={"results": [shortage]})])
        )
        async with adapter:
            result = await adapter.get_drug_shortages(days=30)

        [request] = transport.requests
        assert request.url.path == "/drug/shortages.json"
        assert request.url.params["search"].startswith("update_date:[20240516 TO 20240615]")
        assert request.url.params["sort"] == "update_date:desc"

        [record] = result.records
        assert record.endpoint == "drug_shortage"
        assert record.shortage_id == "0409-4888-02"
        assert record.generic_name == "Lidocaine Hydrochloride Injection"

    @pytest.mark.asyncio
    async def test_shortage_keyword_searches_generic_name(self, fast_config, clock, fixed_now):
        adapter, transport = make(
            FDAAdapter, fast_config, clock, fixed_now, sequence_handler([httpx.Response(200, json={"results": []})])
        )
        async with adapter:
            await adapter.fetch(SourceFilter(program="drug_shortage", keyword="lidocaine"))
        assert 'generic_name:"lidocaine"' in transport.requests[0].url.params["search"]

    @pytest.mark.asyncio
    async def test_not_found_means_no_results(self, fast_config, clock, fixed_now):
        body = {"error": {"code": "NOT_FOUND", "message": "No matches found!"}}
        adapter, transport = make(
            FDAAdapter, fast_config, clock, fixed_now, sequence_handler([httpx.Response(404, json=body)])
        )
        async with adapter:
            result = await adapter.fetch(SourceFilter(program="device"))

        assert result.success
        assert result.records == []
        assert result.errors == []
        assert len(transport.requests) == 1

    @pytest.mark.asyncio
    async def test_records_carry_endpoint_and_payload(self, fast_config, clock, fixed_now):
        results = [
            {"recall_number": "F-1", "classification": "Class I", "recall_initiation_date": "20240612"},
            {"recall_number": "F-2", "classification": "Class II", "recall_initiation_date": "20240611"},
        ]
        adapter, _ = make(
            FDAAdapter, fast_config, clock, fixed_now, sequence_handler([httpx.Response(200, json={"results": results})])
        )
        async with adapter:
            result = await adapter.fetch(SourceFilter(program="food"))

        assert [r.recall_number for r in result.records] == ["F-1", "F-2"]
        assert all(r.endpoint == "food" for r in result.records)
        assert result.records[0].payload == results[0]

    @pytest.mark.asyncio
    async def test_partial_failure_keeps_other_endpoints(self, fast_config, clock, fixed_now):
        def handler(request):
            if request.url.path.startswith("/drug/"):
                return httpx.Response(500)
            return httpx.Response(200, json={"results": [{"recall_number": request.url.path}]})

        adapter, _ = make(FDAAdapter, fast_config, clock, fixed_now, handler)
        async with adapter:
            result = await adapter.get_recent_recalls(days=30)

        assert result.success
        assert result.requests == 3
        assert len(result.records) == 2
        [error] = result.errors
        assert error.type is SourceErrorType.SERVER
        assert error.request == "fda:drug"

    @pytest.mark.asyncio
    async def test_all_requests_failing_is_unsuccessful(self, fast_config, clock, fixed_now):
        adapter, _ = make(FDAAdapter, fast_config, clock, fixed_now, sequence_handler([httpx.Response(401)]))
        async with adapter:
            result = await adapter.fetch()

        assert not result.success
        assert len(result.errors) == 3
        assert result.errors[0].type is SourceErrorType.AUTH
        # breaker threshold is two, so the last endpoint is short-circuited
        assert result.errors[-1].type is SourceErrorType.CIRCUIT_OPEN
        assert "auth_error" in result.error

    @pytest.mark.asyncio
    async def test_unknown_program_is_invalid_request(self, fast_config, clock, fixed_now):
        adapter, transport = make(FDAAdapter, fast_config, clock, fixed_now, sequence_handler([httpx.Response(200)]))
        async with adapter:
            result = await adapter.fetch(SourceFilter(program="tobacco"))

        assert not result.success
        assert result.errors[0].type is SourceErrorType.INVALID_REQUEST
        assert transport.requests == []

    @pytest.mark.asyncio
    async def test_api_key_query_param(self, fast_config, clock, fixed_now):
        fast_config.auth = AuthConfig(type="api_key", key_param="api_key", credential="secret-key")
        adapter, transport = make(
            FDAAdapter, fast_config, clock, fixed_now, sequence_handler([httpx.Response(200, json={"results": []})])
        )
        async with adapter:
            await adapter.fetch(SourceFilter(program="food"))
        assert transport.requests[0].url.params["api_key"] == "secret-key"

    @pytest.mark.asyncio
    async def test_repeat_fetch_served_from_cache(self, fast_config, clock, fixed_now):
        adapter, transport = make(
            FDAAdapter,
            fast_config,
            clock,
            fixed_now,
            sequence_handler([httpx.Response(200, json={"results": [{"recall_number": "F-1"}]})]),
        )
        async with adapter:
            first = await adapter.fetch(SourceFilter(program="food"))
            second = await adapter.fetch(SourceFilter(program="food"))

        assert first.cache_hits == 0
        assert second.cache_hits == 1
        assert len(second.records) == 1
        assert len(transport.requests) == 1

    @pytest.mark.asyncio
    async def test_expired_deadline_sends_nothing(self, fast_config, clock, fixed_now):
        adapter, transport = make(FDAAdapter, fast_config, clock, fixed_now, sequence_handler([httpx.Response(200)]))
        async with adapter:
            result = await adapter.fetch(SourceFilter(program="food"), deadline=clock() - 1)

        assert result.errors[0].type is SourceErrorType.TIMEOUT
        assert transport.requests == []

    @pytest.mark.asyncio
    async def test_health_reports_open_circuit(self, fast_config, clock, fixed_now):
        adapter, _ = make(FDAAdapter, fast_config, clock, fixed_now, sequence_handler([httpx.Response(503)]))
        async with adapter:
            await adapter.fetch()
            health = adapter.health()

        assert health["source"] == "FDA"
        assert health["available"] is False
        assert health["state"] == "open"


class TestAuthSchemes:
    @pytest.mark.asyncio
    async def test_bearer(self, fast_config, clock, fixed_now):
        fast_config.auth = AuthConfig(type="bearer", credential="tok")
        adapter, transport = make(
            EPAAdapter, fast_config, clock, fixed_now, sequence_handler([httpx.Response(200, text=rss())]), feeds=[RSS_URL]
        )
        async with adapter:
            await adapter.fetch()
        assert transport.requests[0].headers["Authorization"] == "Bearer tok"

    @pytest.mark.asyncio
    async def test_basic(self, fast_config, clock, fixed_now):
        fast_config.auth = AuthConfig(type="basic", credential="user:pass")
        adapter, transport = make(
            EPAAdapter, fast_config, clock, fixed_now, sequence_handler([httpx.Response(200, text=rss())]), feeds=[RSS_URL]
        )
        async with adapter:
            await adapter.fetch()
        expected = "Basic " + base64.b64encode(b"user:pass").decode("ascii")
        assert transport.requests[0].headers["Authorization"] == expected

    def test_api_key_needs_a_target(self):
        with pytest.raises(ValueError):
            AuthConfig(type="api_key", credential="x")


class TestFSISAdapter:
    RECALLS = [
        {
            "field_recall_number": "030-2024",
            "field_title": "Chicken Salad Products",
            "field_recall_date": "2024-06-01",
            "field_recall_classification": "Class I",
            "field_states": "Texas, Oklahoma",
        },
        {
            "recallNumber": "031-2024",
            "productName": "Ground Beef",
            "recallDate": "2024-06-10",
            "recallClass": "Class II",
            "distributionPattern": "California",
        },
        {
            "recall_number": "001-2024",
            "product_name": "Pork Sausage",
            "recall_date": "2024-01-02",
        },
    ]

    @pytest.mark.asyncio
    async def test_field_variants_and_window(self, fast_config, clock, fixed_now):
        adapter, transport = make(
            FSISAdapter, fast_config, clock, fixed_now, sequence_handler([httpx.Response(200, json=self.RECALLS)])
        )
        async with adapter:
            result = await adapter.fetch(SourceFilter(days=30))

        assert transport.requests[0].url.params["fromDate"] == "2024-05-16"
        assert [r.recall_number for r in result.records] == ["030-2024", "031-2024"]
        assert result.records[0].product_name == "Chicken Salad Products"

    @pytest.mark.asyncio
    async def test_keyword_and_state_filters(self, fast_config, clock, fixed_now):
        adapter, _ = make(
            FSISAdapter,
            fast_config,
            clock,
            fixed_now,
            sequence_handler([httpx.Response(200, json={"recalls": self.RECALLS})]),
        )
        async with adapter:
            by_keyword = await adapter.fetch(SourceFilter(days=30, keyword="beef"))
            by_state = await adapter.fetch(SourceFilter(days=30, state="ok"))

        assert [r.recall_number for r in by_keyword.records] == ["031-2024"]
        assert [r.recall_number for r in by_state.records] == ["030-2024"]

    @pytest.mark.asyncio
    async def test_unexpected_body_is_reported(self, fast_config, clock, fixed_now):
        adapter, _ = make(FSISAdapter, fast_config, clock, fixed_now, sequence_handler([httpx.Response(200, text='"ok"')]))
        async with adapter:
            result = await adapter.fetch()
        assert not result.success
        assert result.errors[0].type is SourceErrorType.UNKNOWN

    @pytest.mark.asyncio
    async def test_unparseable_body_is_not_cached(self, fast_config, clock, fixed_now):
        """A maintenance page must not be replayed from cache once FSIS recovers"""
        adapter, transport = make(
            FSISAdapter,
            fast_config,
            clock,
            fixed_now,
            sequence_handler(
                [httpx.Response(200, text="<html>maintenance</html>"), httpx.Response(200, json=self.RECALLS)]
            ),
        )
        async with adapter:
            first = await adapter.fetch(SourceFilter(days=30))
            second = await adapter.fetch(SourceFilter(days=30))
            third = await adapter.fetch(SourceFilter(days=30))

        assert not first.success
        assert second.success
        assert [r.recall_number for r in second.records] == ["030-2024", "031-2024"]
        assert len(transport.requests) == 2
        assert second.cache_hits == 0
        assert third.cache_hits == 1
        assert adapter.health()["failures"] == 0


class TestCDCAdapter:
    @pytest.mark.asyncio
    async def test_advisory_feed_respects_cutoff(self, fast_config, clock, fixed_now):
        feed = rss(
            {"title": "HAN: Measles cases in Ohio", "link": "https://www.cdc.gov/han/1", "guid": "han-1",
             "pubDate": "Fri, 14 Jun 2024 10:00:00 GMT", "description": "Clinicians alert"},
            {"title": "HAN: Old advisory", "link": "https://www.cdc.gov/han/0", "guid": "han-0",
             "pubDate": "Mon, 03 Jun 2024 10:00:00 GMT"},
            {"title": "Undated item", "link": "https://www.cdc.gov/han/x"},
        )
        adapter, transport = make(
            CDCAdapter,
            fast_config,
            clock,
            fixed_now,
            sequence_handler([httpx.Response(200, text=feed)]),
            advisory_feeds=[RSS_URL],
        )
        async with adapter:
            result = await adapter.get_health_advisories(days=7)

        assert len(transport.requests) == 1
        assert [r.guid for r in result.records] == ["han-1"]
        assert result.records[0].type == "advisory"

    @pytest.mark.asyncio
    async def test_outbreak_query(self, fast_config, clock, fixed_now):
        outbreaks = [
            {"outbreak_id": "OB-1", "pathogen": "Listeria", "investigation_start_date": "2024-06-05"},
            {"outbreak_id": "OB-0", "pathogen": "E. coli", "investigation_start_date": "2024-01-05"},
        ]
        adapter, transport = make(
            CDCAdapter, fast_config, clock, fixed_now, sequence_handler([httpx.Response(200, json=outbreaks)])
        )
        async with adapter:
            result = await adapter.get_recent_outbreaks(days=30, limit=20)

        params = transport.requests[0].url.params
        assert params["$where"] == "investigation_start_date >= '2024-05-16'"
        assert params["$limit"] == "20"
        assert params["$order"] == "investigation_start_date DESC"
        assert [r.id for r in result.records] == ["OB-1"]

    @pytest.mark.asyncio
    async def test_search_merges_programs_newest_first(self, fast_config, clock, fixed_now):
        outbreaks = [{"outbreak_id": "OB-1", "title": "Salmonella and onions", "investigation_start_date": "2024-06-01"}]
        feed = rss(
            {"title": "Salmonella advisory", "guid": "han-9", "link": "https://www.cdc.gov/han/9",
             "pubDate": "Wed, 12 Jun 2024 10:00:00 GMT"},
            {"title": "Unrelated update", "guid": "han-8", "link": "https://www.cdc.gov/han/8",
             "pubDate": "Thu, 13 Jun 2024 10:00:00 GMT"},
        )

        def handler(request):
            if request.url.host == "data.cdc.gov":
                return httpx.Response(200, json=outbreaks)
            return httpx.Response(200, text=feed)

        adapter, _ = make(CDCAdapter, fast_config, clock, fixed_now, handler, advisory_feeds=[RSS_URL])
        async with adapter:
            result = await adapter.search("salmonella", limit=10)

        assert result.requests == 2
        assert [getattr(r, "guid", None) or r.id for r in result.records] == ["han-9", "OB-1"]

    @pytest.mark.asyncio
    async def test_failed_feed_does_not_sink_outbreaks(self, fast_config, clock, fixed_now):
        def handler(request):
            if request.url.host == "data.cdc.gov":
                return httpx.Response(200, json=[{"outbreak_id": "OB-1", "investigation_start_date": "2024-06-10"}])
            return httpx.Response(500)

        adapter, _ = make(CDCAdapter, fast_config, clock, fixed_now, handler, advisory_feeds=[RSS_URL])
        async with adapter:
            result = await adapter.fetch()

        assert result.success
        assert len(result.records) == 1
        assert len(result.errors) == 1


class TestEPAAdapter:
    FEED = rss(
        {
            "title": "EPA settles with Acme Refining, resolving Clean Air Act violations in Texas",
            "description": "Acme will pay a $2.5 million civil penalty for excess emissions.",
            "link": "https://www.epa.gov/newsreleases/acme",
            "guid": "epa-acme",
            "pubDate": "Tue, 11 Jun 2024 15:00:00 EDT",
        },
        {
            "title": "EPA celebrates Earth Day",
            "description": "Community events across the country.",
            "link": "https://www.epa.gov/newsreleases/earth-day",
            "pubDate": "Wed, 12 Jun 2024 15:00:00 EDT",
        },
    )

    @pytest.mark.asyncio
    async def test_enforcement_fields(self, fast_config, clock, fixed_now):
        adapter, _ = make(
            EPAAdapter, fast_config, clock, fixed_now, sequence_handler([httpx.Response(200, text=self.FEED)]), feeds=[RSS_URL]
        )
        async with adapter:
            result = await adapter.get_enforcement_actions(days=30)

        [record] = result.records
        assert record.penalty_amount == 2_500_000.0
        assert record.action_type == "settlement"
        assert record.significance == "significant"
        assert record.state == "TX"
        assert record.region == "Region 6"
        assert record.defendant == "Acme Refining"
        assert record.environmental_media == ["Air"]
        assert record.case_number == "epa-acme"

    @pytest.mark.asyncio
    async def test_state_filter(self, fast_config, clock, fixed_now):
        adapter, _ = make(
            EPAAdapter, fast_config, clock, fixed_now, sequence_handler([httpx.Response(200, text=self.FEED)]), feeds=[RSS_URL]
        )
        async with adapter:
            result = await adapter.fetch(SourceFilter(state="CA"))
        assert result.records == []

    @pytest.mark.asyncio
    async def test_search_matches_description(self, fast_config, clock, fixed_now):
        adapter, _ = make(
            EPAAdapter, fast_config, clock, fixed_now, sequence_handler([httpx.Response(200, text=self.FEED)]), feeds=[RSS_URL]
        )
        async with adapter:
            hits = await adapter.search("Emissions")
            misses = await adapter.search("asbestos")

        assert [r.case_number for r in hits.records] == ["epa-acme"]
        assert misses.records == []


class TestRegulationsGovAdapter:
    DOCUMENT = {
        "id": "FDA-2024-N-0001-0001",
        "type": "documents",
        "attributes": {
            "title": "Food recall guidance",
            "documentType": "Rule",
            "agencyId": "FDA",
            "postedDate": "2024-06-01T00:00:00Z",
        },
    }

    def config(self, fast_config):
        fast_config.auth = AuthConfig(type="api_key", header_name="X-Api-Key", credential="k")
        return fast_config

    @pytest.mark.asyncio
    async def test_search_params_and_auth_header(self, fast_config, clock, fixed_now):
        adapter, transport = make(
            RegulationsGovAdapter,
            self.config(fast_config),
            clock,
            fixed_now,
            sequence_handler([httpx.Response(200, json={"data": [self.DOCUMENT]})]),
            base_url="https://regs.example.test/v4/",
        )
        async with adapter:
            result = await adapter.search_documents(
                SourceFilter(keyword="salmonella", program="fda", document_type="Rule", days=30, limit=25)
            )

        [request] = transport.requests
        assert request.url.path == "/v4/documents"
        params = request.url.params
        assert params["filter[searchTerm]"] == "salmonella"
        assert params["filter[agencyId]"] == "FDA"
        assert params["filter[documentType]"] == "Rule"
        assert params["filter[postedDate][ge]"] == "2024-05-16"
        assert params["page[size]"] == "25"
        assert params["page[number]"] == "1"
        assert params["sort"] == "-postedDate"
        assert request.headers["X-Api-Key"] == "k"
        assert "api_key" not in params

        [record] = result.records
        assert record.document_id == "FDA-2024-N-0001-0001"
        assert record.urgency == "High"
        assert record.link == "https://www.regulations.gov/document/FDA-2024-N-0001-0001"

    @pytest.mark.asyncio
    async def test_page_size_is_clamped(self, fast_config, clock, fixed_now):
        adapter, transport = make(
            RegulationsGovAdapter,
            fast_config,
            clock,
            fixed_now,
            sequence_handler([httpx.Response(200, json={"data": []})]),
            base_url="https://regs.example.test/v4",
        )
        async with adapter:
            await adapter.fetch(SourceFilter(limit=1))
        assert transport.requests[0].url.params["page[size]"] == "5"

    @pytest.mark.asyncio
    async def test_get_document(self, fast_config, clock, fixed_now):
        adapter, transport = make(
            RegulationsGovAdapter,
            fast_config,
            clock,
            fixed_now,
            sequence_handler([httpx.Response(200, json={"data": self.DOCUMENT})]),
            base_url="https://regs.example.test/v4",
        )
        async with adapter:
            result = await adapter.get_document("FDA-2024-N-0001-0001")

        assert transport.requests[0].url.path == "/v4/documents/FDA-2024-N-0001-0001"
        assert [r.title for r in result.records] == ["Food recall guidance"]

    @pytest.mark.asyncio
    async def test_missing_data_member(self, fast_config, clock, fixed_now):
        adapter, _ = make(
            RegulationsGovAdapter,
            fast_config,
            clock,
            fixed_now,
            sequence_handler([httpx.Response(200, content=json.dumps({"errors": []}).encode())]),
            base_url="https://regs.example.test/v4",
        )
        async with adapter:
            result = await adapter.fetch()
        assert not result.success
        assert result.records == []

    @pytest.mark.asyncio
    async def test_malformed_item_is_skipped(self, fast_config, clock, fixed_now):
        broken = {"id": "FDA-2024-N-0002-0001", "attributes": ["not", "an", "object"]}
        adapter, _ = make(
            RegulationsGovAdapter,
            fast_config,
            clock,
            fixed_now,
            sequence_handler([httpx.Response(200, json={"data": [self.DOCUMENT, broken]})]),
            base_url="https://regs.example.test/v4",
        )
        async with adapter:
            result = await adapter.fetch()

        assert result.success
        assert [r.document_id for r in result.records] == ["FDA-2024-N-0001-0001"]


class TestParseFeed:
    def test_items_without_title_or_date_are_dropped(self):
        items = parse_feed(
            rss(
                {"title": "Kept", "pubDate": "Fri, 14 Jun 2024 10:00:00 GMT", "category": "Food"},
                {"title": "No date"},
                {"pubDate": "Fri, 14 Jun 2024 10:00:00 GMT"},
            )
        )
        assert [i["title"] for i in items] == ["Kept"]
        assert items[0]["categories"] == ["Food"]
