"""
Contract compiler and path parameter resolver.

Run with: pytest tests/ -v
"""

import pytest
from fastapi import FastAPI

from http_audit.services.contract import (
    ContractError,
    compile_contract,
    compile_template,
    load_contract_document,
)
from http_audit.services.path_parameters import (
    NullPathParameterResolver,
    PathParameterResolver,
)


# ── Compilation ────────────────────────────────────────────────────────────────
class TestCompileContract:
    def test_only_templates_with_path_parameters_are_compiled(self, orders_contract):
        compiled = compile_contract(orders_contract)
        assert list(compiled) == [
            "/orders/{id}/items",
            "/customers/{customer_id}/orders/{order_id}",
        ]

    def test_path_level_parameters_count(self, orders_contract):
        compiled = compile_contract(orders_contract)
        template = compiled["/customers/{customer_id}/orders/{order_id}"]
        assert template.parameter_names == ("customer_id", "order_id")

    def test_parameter_location_is_case_insensitive(self):
        compiled = compile_contract({
            "paths": {"/things/{ref}": {"post": {"parameters": [{"name": "ref", "in": "PATH"}]}}}
        })
        assert "/things/{ref}" in compiled

    def test_operation_without_parameters_is_ignored(self):
        compiled = compile_contract({
            "paths": {
                "/things/{ref}": {
                    "get": {},
                    "delete": {"parameters": [{"name": "ref", "in": "path"}]},
                },
            }
        })
        assert list(compiled) == ["/things/{ref}"]

    def test_compiling_twice_gives_the_same_result(self, orders_contract):
        first = compile_contract(orders_contract)
        second = compile_contract(orders_contract)
        assert {k: (v.pattern.pattern, v.parameter_names) for k, v in first.items()} == {
            k: (v.pattern.pattern, v.parameter_names) for k, v in second.items()
        }

    @pytest.mark.parametrize("document", [None, {}, {"paths": None}, {"paths": {}}, {"info": {}}])
    def test_empty_contract_is_fatal(self, document):
        with pytest.raises(ContractError):
            compile_contract(document)

    def test_null_path_item_is_fatal(self):
        with pytest.raises(ContractError):
            compile_contract({"paths": {"/orders/{id}": None}})

    def test_null_template_is_fatal(self):
        with pytest.raises(ContractError):
            compile_contract({"paths": {None: {"get": {}}}})

    def test_fastapi_generated_schema_compiles(self):
        api = FastAPI()

        @api.get("/items/{item_id}")
        async def read_item(item_id: str, q: str | None = None):
            return {}

        compiled = compile_contract(api.openapi())
        assert compiled["/items/{item_id}"].parameter_names == ("item_id",)


class TestCompileTemplate:
    def test_static_segments_are_escaped(self):
        template = compile_template("/files/v1.0/{name}")
        assert template.match("/files/v1.0/report") == {"name": "report"}
        assert template.match("/files/v1x0/report") is None

    def test_plus_sign_is_literal(self):
        template = compile_template("/c++/{lang}")
        assert template.match("/c++/std") == {"lang": "std"}
        assert template.match("/cc/std") is None

    def test_parameter_does_not_cross_segments(self):
        template = compile_template("/orders/{id}")
        assert template.match("/orders/1/2") is None

    def test_trailing_slash_is_tolerated(self):
        template = compile_template("/orders/{id}/items")
        assert template.match("/orders/42/items/") == {"id": "42"}


# ── Resolution ─────────────────────────────────────────────────────────────────
class TestPathParameterResolver:
    def test_resolves_single_parameter(self, orders_contract):
        resolver = PathParameterResolver(compile_contract(orders_contract))
        assert resolver.resolve("/orders/42/items") == {"id": "42"}

    def test_values_are_zipped_positionally(self, orders_contract):
        resolver = PathParameterResolver(compile_contract(orders_contract))
        assert resolver.resolve("/customers/c-1/orders/o-9") == {
            "customer_id": "c-1",
            "order_id": "o-9",
        }

    def test_unmatched_path_yields_empty_mapping(self, orders_contract):
        resolver = PathParameterResolver(compile_contract(orders_contract))
        assert resolver.resolve("/unknown/42") == {}
        assert resolver.resolve("/status") == {}

    def test_first_declared_template_wins(self):
        resolver = PathParameterResolver(compile_contract({
            "paths": {
                "/orders/{id}": {"get": {"parameters": [{"name": "id", "in": "path"}]}},
                "/orders/{name}": {"put": {"parameters": [{"name": "name", "in": "path"}]}},
            }
        }))
        for _ in range(3):
            assert resolver.resolve("/orders/7") == {"id": "7"}

    def test_null_resolver_never_resolves(self):
        assert NullPathParameterResolver().resolve("/orders/42/items") == {}


# ── Loading ────────────────────────────────────────────────────────────────────
class TestLoadContractDocument:
    def test_loads_yaml(self, tmp_path):
        spec = tmp_path / "openapi.yaml"
        spec.write_text(
            "openapi: 3.0.1\n"
            "paths:\n"
            "  /orders/{id}:\n"
            "    get:\n"
            "      parameters:\n"
            "        - name: id\n"
            "          in: path\n",
            encoding="utf-8",
        )
        document = load_contract_document(str(spec))
        assert "/orders/{id}" in compile_contract(document)

    def test_loads_json_through_glob(self, tmp_path):
        (tmp_path / "api-spec.json").write_text(
            '{"paths": {"/a/{b}": {"parameters": [{"name": "b", "in": "path"}]}}}',
            encoding="utf-8",
        )
        document = load_contract_document(str(tmp_path / "*.json"))
        assert list(document["paths"]) == ["/a/{b}"]

    def test_missing_document_is_fatal(self, tmp_path):
        with pytest.raises(ContractError):
            load_contract_document(str(tmp_path / "nope.yaml"))

    def test_unparsable_document_is_fatal(self, tmp_path):
        spec = tmp_path / "broken.yaml"
        spec.write_text("paths: [unclosed", encoding="utf-8")
        with pytest.raises(ContractError):
            load_contract_document(str(spec))
