"""
Content Package.

Page models, page type definitions and the mapping between
models and stored records.

Modules:
- models: Page, block and sitemap models
- schemas: Page type definition schemas
- page_types: Page type registry
- values: Field value codec
- transformer: Model <-> record mapping
"""
