"""
Services layer - core business logic for newsfilter.

1. Ingestion (ingestion.py):
   - Retention cutoff and global URL dedup on insert
   - Age-based purge of stale articles

2. Orchestrator (orchestrator.py):
   - Sequential per-source fetch with progress events
   - Automatic classification when new articles arrive

3. Classifier (classifier.py):
   - Batched relevance scoring with the generative model

4. Model client (llm.py):
   - Single-turn Claude calls and JSON array extraction

5. Source sync (source_sync.py):
   - Upsert of sources declared in sources.json
"""
