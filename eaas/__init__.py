"""
EaaS: Evaluation-as-a-Service job engine

Runs batch evaluation jobs: every prompt against every configured model,
scored with pluggable metrics, aggregated into a ranked and signed result
set, with a per-job JSON-lines event log.

Main components:
- evaluation: Job model, config loading, runner, aggregation, verification
- providers: Model backends (Together, Groq, Cohere, OpenRouter, Ollama)
- metrics: BLEU, ROUGE-L, exact match, latency and cost
- storage: File-system persistence for jobs, results and event logs
- reporting: Console summary and JSON/YAML/CSV/HTML export
"""

__version__ = "0.1.0"
