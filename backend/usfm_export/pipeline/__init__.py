"""
Export workflow — durable, resumable orchestration of USFM export jobs.

Modules:
    job_store   ExportJobStore, the usfm_export_jobs record store
    ledger      StepExecutor, exactly-once-in-effect step execution
    stream      assemble(), async byte stream to one blob
    engine      ExportWorkflow, the orchestrator
    steps/      initialize and generateZip
    errors      ExportError hierarchy

Import from the submodules directly; `usfm_export.export` depends on
`errors`, so this package must not import the engine eagerly.
"""
