"""The schema document pipeline.

Stages, in the order a payload flows through them:
1. Detector — decide which validation pattern applies and the direction
2. Graph — build and check the capability extension graph
3. Composer — merge extension fragments into the root schema via allOf
4. Annotations — resolve ucp_request/ucp_response into one concrete view
5. Validation — hand the resolved schema and the instance to jsonschema

The bundler inlines $ref targets; the composer uses it on every fetched
capability schema and ``resolve --bundle`` runs it on a single schema.
"""
