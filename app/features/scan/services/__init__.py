"""
Scan Services

Organized by pipeline stage, in the order a scan runs them:

1. crawler/ - Page discovery and capture
   - page_loader.py: Selenium tab-per-page loading, HTML + full-page screenshot
   - site_crawler.py: Same-origin BFS with per-page retry and a page budget

2. storage/ - Evidence upload
   - evidence_store.py: Screenshot/HTML to S3 or local disk, keyed by scan and URL

3. rules/ - Automated checks
   - checkers.py: axe-core (Selenium) and static markup checkers
   - rule_runner.py: Per-page dedup and deterministic severity ordering

4. interpretation/ - AI enrichment
   - provider.py: OpenRouter chat completions with 429 backoff
   - validator.py: Untrusted reply -> Interpretation or nothing
   - fallback.py: Heuristic risk category and recommendation
   - interpreter.py: Bounded-concurrency enrichment into issue records

5. scoring/ - risk_scorer.py: Weighted 0-100 site risk

6. reporting/ - report_builder.py: JSON export and PDF report

7. store/ - scan_store.py: Authoritative scan records (memory or Redis)

8. persistence/ - persistence_sync.py: Circuit-broken durable mirror

9. orchestration/ - Job coordination
   - scan_runner.py: The pipeline and its state machine
   - dispatcher.py: Celery queue or inline asyncio execution
"""
