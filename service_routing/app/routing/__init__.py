"""
Routing decision package.

Turns heterogeneous parcel records into department assignments:

- models: Drafts, parcels, rules, departments and routing outcomes.
- normalizer: Alias tables mapping raw records onto a ParcelDraft.
- insurance: Value threshold gate and approval state machine.
- departments: Directory resolving a department by id or name.
- engine: Weight-bucket rule evaluation (first match wins).
- resolver: Explicit -> rule -> default bucket assignment chain.
"""
