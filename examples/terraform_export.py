"""Compile a diagram to Terraform example.

Shows how to load a canvas snapshot, compile it with the built-in providers,
and write the split .tf files.
"""

from pathlib import Path

from canvasform import Diagram, compile_diagram

diagram_yaml = """
name: Web App
project:
  naming:
    enabled: true
    template: "{org}-{env}-{name}"
    env: prod
    org: acme
  common_tags:
    team: platform
nodes:
  - id: sub
    type_id: azurerm/core/subscription
    name: Production
    properties:
      subscription_id: 00000000-0000-0000-0000-000000000001
  - id: rg
    type_id: azurerm/core/resource_group
    name: web
    properties:
      location: westeurope
  - id: vnet
    type_id: azurerm/networking/virtual_network
    name: hub
  - id: snet
    type_id: azurerm/networking/subnet
    name: app
  - id: plan
    type_id: azurerm/compute/app_service_plan
    name: plan
    properties:
      sku_name: P1v3
      _cost_monthly: 118.26
  - id: app
    type_id: azurerm/compute/app_service
    name: frontend
    properties:
      runtime_stack: python
      runtime_version: "3.12"
      app_settings:
        GREETING: 'say "hi" to ${USER}'
edges:
  - {source: sub, source_handle: rg-out, target: rg, target_handle: subscription-in}
  - {source: rg, source_handle: rg-out, target: vnet, target_handle: rg-in}
  - {source: rg, source_handle: rg-out, target: snet, target_handle: rg-in}
  - {source: vnet, source_handle: subnets-out, target: snet, target_handle: vnet-in}
  - {source: rg, source_handle: rg-out, target: plan, target_handle: rg-in}
  - {source: rg, source_handle: rg-out, target: app, target_handle: rg-in}
  - {source: plan, source_handle: apps-out, target: app, target_handle: plan-in}
"""

diagram = Diagram.from_yaml(diagram_yaml)
result = compile_diagram(diagram)

for finding in result.findings:
    print(f"[{finding.severity}] {finding.code}: {finding.message}")

print(result.document)

# One file per section, ready for `terraform init`
out = Path("build/web-app")
out.mkdir(parents=True, exist_ok=True)
for name, content in result.files.items():
    (out / name).write_text(content)
print(f"Wrote {len(result.files)} files to {out}")
