"""
Routing Service package.

Routes physical parcels to handling departments using priority-ordered
weight-bucket rules, and parks high-value parcels behind a manual
insurance approval. It provides:

- app.main: RoutingService facade wiring config, stores and components.
- app.routing: Models, field normalizer, insurance gate, department
  directory, rule engine and assignment resolver.
- app.ingestion: Batch ingestion and the bulk XML document reader.
- app.rules: Rule administration and the rule-change cascade.
- app.persistence: Storage contracts and the in-memory reference store.

Guidelines:
- Rule and department snapshots are passed explicitly into evaluation.
- Every store call may block or fail independently.
- Keep rule evaluation deterministic and observable (metrics + logs).
"""
