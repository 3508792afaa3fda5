import threading

from email_discovery.dedupe import Deduplicator, merge_records, record_from_sighting, record_id
from email_discovery.extraction import candidate_from_address
from email_discovery.models import Sighting, ValidationOutcome, Verdict
from email_discovery.stats import StatsAggregator

VALID = ValidationOutcome(syntax=Verdict.PASS, domain=Verdict.PASS, mx_found=True)
INVALID = ValidationOutcome(syntax=Verdict.PASS, domain=Verdict.FAIL)


def make_sighting(
    raw: str,
    confidence: int,
    *,
    category: str = "contact page",
    url: str = "https://example.org/contact",
    validation: ValidationOutcome = VALID,
    email_type: str = "admin",
) -> Sighting:
    candidate = candidate_from_address(raw, source_category=category, source_url=url)
    return Sighting(
        candidate=candidate,
        email_type=email_type,
        validation=validation,
        confidence=confidence,
    )


def test_mixed_case_sightings_collapse_to_one_record() -> None:
    stats = StatsAggregator()
    dedupe = Deduplicator(stats=stats)
    footer = make_sighting("Admin@Example.ORG", 75, category="footer", url="https://example.org/")
    dedupe.add(footer)
    merged = dedupe.add(make_sighting("admin@example.org", 85))

    assert len(dedupe) == 1
    assert merged.address == "admin@example.org"
    assert merged.confidence == 85
    assert merged.source == "Contact Page"
    assert merged.sightings == 2
    assert stats.snapshot().total_found == 1


def test_record_id_is_stable_per_address() -> None:
    first = record_from_sighting(make_sighting("Admin@Example.ORG", 75))
    second = record_from_sighting(make_sighting("admin@example.org", 40, category="footer"))
    assert first.id == second.id == record_id("admin@example.org")
    assert record_id("info@example.org") != first.id


def test_merge_is_commutative_for_both_policies() -> None:
    a = record_from_sighting(make_sighting("admin@example.org", 70, category="footer"))
    b = record_from_sighting(
        make_sighting("admin@example.org", 70, category="about page", url="https://example.org/a")
    )
    c = record_from_sighting(make_sighting("admin@example.org", 41, validation=INVALID))
    for policy in ("max", "mean"):
        assert merge_records(a, b, policy) == merge_records(b, a, policy)
        assert merge_records(a, c, policy) == merge_records(c, a, policy)
        assert merge_records(merge_records(a, b, policy), c, policy) == merge_records(
            merge_records(c, b, policy), a, policy
        )


def test_mean_policy_rounds_half_up() -> None:
    a = record_from_sighting(make_sighting("admin@example.org", 70))
    b = record_from_sighting(make_sighting("admin@example.org", 75))
    assert merge_records(a, b, "mean").confidence == 73
    assert merge_records(a, b, "max").confidence == 75


def test_later_valid_sighting_upgrades_record_and_stats() -> None:
    stats = StatsAggregator()
    dedupe = Deduplicator(stats=stats)
    dedupe.add(make_sighting("admin@example.org", 15, validation=INVALID))
    assert stats.snapshot().invalid_emails == 1

    merged = dedupe.add(make_sighting("admin@example.org", 75))
    snapshot = stats.snapshot()
    assert merged.is_valid is True
    assert snapshot.valid_emails == 1
    assert snapshot.invalid_emails == 0
    assert snapshot.total_found == 1

    dedupe.add(make_sighting("admin@example.org", 15, validation=INVALID))
    assert dedupe.get("admin@example.org").is_valid is True
    assert stats.snapshot().valid_emails == 1


def test_on_record_receives_every_merge_state() -> None:
    seen = []
    dedupe = Deduplicator(stats=StatsAggregator(), on_record=seen.append)
    dedupe.add(make_sighting("info@example.org", 60, email_type="info"))
    dedupe.add(make_sighting("info@example.org", 80, email_type="info"))
    assert [record.confidence for record in seen] == [60, 80]


def test_records_keep_first_seen_order() -> None:
    dedupe = Deduplicator(stats=StatsAggregator())
    for raw in ("b@example.org", "a@example.org", "B@example.org", "c@example.org"):
        dedupe.add(make_sighting(raw, 50))
    assert [record.address for record in dedupe.records()] == [
        "b@example.org",
        "a@example.org",
        "c@example.org",
    ]


def test_concurrent_adds_produce_one_record_per_address() -> None:
    stats = StatsAggregator()
    dedupe = Deduplicator(stats=stats)
    addresses = [f"user{i}@example.org" for i in range(10)]

    def worker(offset: int) -> None:
        for i, address in enumerate(addresses):
            dedupe.add(make_sighting(address, 60 + (i + offset) % 20))

    threads = [threading.Thread(target=worker, args=(n,)) for n in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len(dedupe) == 10
    assert stats.snapshot().total_found == 10
    assert all(record.sightings == 8 for record in dedupe.records())
