"""Transform modules live here.

Each module decorates one function per asset class with
`@assetpipe.core.transform(AssetClass.X)`; the builder imports every module in
this package and collects the decorated functions.

Keep transforms stateless: everything they need arrives in the context.
"""
