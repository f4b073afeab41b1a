import os

from pydantic import BaseModel, ConfigDict, Field

from docguard import (
    CollectionInitializer,
    ListSchema,
    PydanticSchema,
    ValidationError,
    create_persisting_db,
)


class Page(BaseModel):
    model_config = ConfigDict(extra="allow")

    slug: str = Field(min_length=1)
    content: str = ""
    is_disabled: bool = False


def run_example():
    db_path = "example_basic.docdb"
    if os.path.exists(db_path):
        os.remove(db_path)

    print("--- docguard: Basic Example ---")

    # 1. Open (or create) the database file
    db = create_persisting_db(db_path).load()

    # 2. Describe the collection the application needs
    page_schema = PydanticSchema(Page)
    initializer = CollectionInitializer(
        db,
        "pages",
        unique_field_names=["slug"],
        collection_schema=ListSchema(page_schema, unique="slug"),
        record_schema=page_schema,
    )
    pages = initializer.initialize()
    print(f"Collection '{pages.name}' unique on {pages.unique_field_names}")

    # 3. Validated writes
    home = pages.validate_and_insert({"slug": "home", "content": "Welcome"})
    print(f"Inserted home page with storage ID {home['$id']}")

    try:
        pages.validate_and_insert({"slug": "home"})
    except ValidationError as e:
        print(f"Rejected duplicate: {e}")

    patched = pages.validate_and_patch({"$id": home["$id"], "content": "Hello again"})
    print(f"Patched: {patched['content']} (revision {patched['meta']['revision']})")

    # 4. Persist
    db.save()
    print("\nExample finished. Database saved to", db_path)


if __name__ == "__main__":
    run_example()
