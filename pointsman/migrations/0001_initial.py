# Initial schema for pointsman

import uuid
from decimal import Decimal

import django.core.validators
import django.db.models.deletion
import django.utils.timezone
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="ClientAccount",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "client_ref",
                    models.CharField(
                        db_index=True,
                        help_text="Identificador do cliente no diretório externo",
                        max_length=64,
                        verbose_name="cliente",
                    ),
                ),
                (
                    "branch_ref",
                    models.CharField(
                        db_index=True,
                        help_text="Identificador da filial",
                        max_length=64,
                        verbose_name="filial",
                    ),
                ),
                (
                    "balance",
                    models.IntegerField(
                        default=0,
                        help_text="Pontos disponíveis para resgate",
                        verbose_name="saldo de pontos",
                    ),
                ),
                (
                    "lifetime_points",
                    models.IntegerField(
                        default=0,
                        help_text="Total de pontos já acumulados (nunca decresce)",
                        verbose_name="pontos acumulados",
                    ),
                ),
                ("first_purchase_completed", models.BooleanField(default=False, verbose_name="primeira compra concluída")),
                ("registration_bonus_granted", models.BooleanField(default=False, verbose_name="bônus de cadastro concedido")),
                (
                    "purchase_count",
                    models.PositiveIntegerField(
                        default=0,
                        help_text="Pedidos distintos processados (monotônico)",
                        verbose_name="compras",
                    ),
                ),
                ("last_visit_date", models.DateField(blank=True, null=True, verbose_name="última visita")),
                ("visits_on_last_date", models.PositiveIntegerField(default=0, verbose_name="visitas no dia")),
                ("is_active", models.BooleanField(default=True, verbose_name="ativo")),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="criado em")),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="atualizado em")),
            ],
            options={
                "verbose_name": "conta de pontos",
                "verbose_name_plural": "contas de pontos",
                "db_table": "pointsman_client_account",
                "constraints": [
                    models.UniqueConstraint(fields=("client_ref", "branch_ref"), name="pointsman_unique_account"),
                    models.CheckConstraint(condition=models.Q(("balance__gte", 0)), name="pointsman_balance_non_negative"),
                ],
            },
        ),
        migrations.CreateModel(
            name="LedgerEntry",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "direction",
                    models.CharField(
                        choices=[
                            ("earned", "Acúmulo"),
                            ("redeemed", "Resgate"),
                            ("expired", "Expiração"),
                            ("adjusted", "Ajuste"),
                        ],
                        max_length=20,
                        verbose_name="direção",
                    ),
                ),
                ("amount", models.PositiveIntegerField(verbose_name="pontos")),
                (
                    "delta",
                    models.IntegerField(
                        help_text="Positivo para crédito, negativo para débito",
                        verbose_name="variação",
                    ),
                ),
                (
                    "balance_after",
                    models.IntegerField(
                        help_text="Saldo de pontos após esta transação",
                        verbose_name="saldo após",
                    ),
                ),
                (
                    "reason_code",
                    models.CharField(
                        choices=[
                            ("purchase_amount", "Valor da compra"),
                            ("accumulated_purchases", "Compras acumuladas"),
                            ("first_purchase", "Primeira compra"),
                            ("client_registration", "Cadastro"),
                            ("branch_visit", "Visita à filial"),
                            ("redemption", "Resgate de recompensa"),
                            ("manual_adjustment", "Ajuste manual"),
                            ("expiration", "Expiração"),
                        ],
                        db_index=True,
                        max_length=32,
                        verbose_name="motivo",
                    ),
                ),
                (
                    "order_ref",
                    models.CharField(blank=True, help_text="ID externo do pedido", max_length=100, verbose_name="pedido"),
                ),
                ("description", models.CharField(blank=True, max_length=200, verbose_name="descrição")),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True, verbose_name="criado em")),
                ("created_by", models.CharField(blank=True, max_length=100, verbose_name="criado por")),
                (
                    "account",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="entries",
                        to="pointsman.clientaccount",
                        verbose_name="conta",
                    ),
                ),
            ],
            options={
                "verbose_name": "lançamento de pontos",
                "verbose_name_plural": "lançamentos de pontos",
                "db_table": "pointsman_ledger_entry",
                "ordering": ["-created_at", "-id"],
                "indexes": [
                    models.Index(fields=["account", "-created_at"], name="pointsman_entry_account_idx"),
                    models.Index(fields=["account", "order_ref"], name="pointsman_entry_order_idx"),
                ],
                "constraints": [
                    models.CheckConstraint(condition=models.Q(("amount__gt", 0)), name="pointsman_entry_amount_positive"),
                    models.UniqueConstraint(
                        condition=models.Q(
                            ("reason_code__in", ["purchase_amount", "accumulated_purchases", "first_purchase"]),
                            models.Q(("order_ref", ""), _negated=True),
                        ),
                        fields=("account", "order_ref", "reason_code"),
                        name="pointsman_unique_purchase_award",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="RulesConfig",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("branch_ref", models.CharField(db_index=True, max_length=64, verbose_name="filial")),
                ("amount_rule_enabled", models.BooleanField(default=True, verbose_name="pontos por valor")),
                (
                    "amount_rule_amount",
                    models.DecimalField(
                        decimal_places=2,
                        default=Decimal("100"),
                        max_digits=12,
                        validators=[django.core.validators.MinValueValidator(Decimal("0.01"))],
                        verbose_name="valor base",
                    ),
                ),
                ("amount_rule_points", models.PositiveIntegerField(default=1, verbose_name="pontos por valor base")),
                ("accumulated_rule_enabled", models.BooleanField(default=False, verbose_name="pontos por compras acumuladas")),
                (
                    "accumulated_rule_purchases_required",
                    models.PositiveIntegerField(
                        default=5,
                        validators=[django.core.validators.MinValueValidator(1)],
                        verbose_name="compras necessárias",
                    ),
                ),
                ("accumulated_rule_points", models.PositiveIntegerField(default=10, verbose_name="pontos por meta de compras")),
                ("first_purchase_enabled", models.BooleanField(default=True, verbose_name="bônus de primeira compra")),
                ("first_purchase_points", models.PositiveIntegerField(default=5, verbose_name="pontos de primeira compra")),
                ("registration_enabled", models.BooleanField(default=True, verbose_name="bônus de cadastro")),
                ("registration_points", models.PositiveIntegerField(default=10, verbose_name="pontos de cadastro")),
                ("visit_enabled", models.BooleanField(default=False, verbose_name="pontos por visita")),
                ("visit_points", models.PositiveIntegerField(default=2, verbose_name="pontos por visita")),
                (
                    "visit_max_per_day",
                    models.PositiveIntegerField(
                        default=1,
                        validators=[django.core.validators.MinValueValidator(1)],
                        verbose_name="visitas por dia",
                    ),
                ),
                ("is_active", models.BooleanField(default=True, verbose_name="ativa")),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="criado em")),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="atualizado em")),
            ],
            options={
                "verbose_name": "configuração de pontos",
                "verbose_name_plural": "configurações de pontos",
                "db_table": "pointsman_rules_config",
                "constraints": [
                    models.UniqueConstraint(
                        condition=models.Q(("is_active", True)),
                        fields=("branch_ref",),
                        name="pointsman_one_active_config_per_branch",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="Reward",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=100, verbose_name="nome")),
                ("description", models.CharField(blank=True, max_length=500, verbose_name="descrição")),
                (
                    "points_required",
                    models.PositiveIntegerField(
                        validators=[django.core.validators.MinValueValidator(1)],
                        verbose_name="pontos necessários",
                    ),
                ),
                (
                    "reward_type",
                    models.CharField(
                        choices=[
                            ("discount", "Desconto"),
                            ("product", "Produto"),
                            ("service", "Serviço"),
                            ("other", "Outro"),
                        ],
                        default="discount",
                        max_length=20,
                        verbose_name="tipo",
                    ),
                ),
                (
                    "reward_value",
                    models.DecimalField(
                        decimal_places=2,
                        default=Decimal("0"),
                        max_digits=12,
                        validators=[django.core.validators.MinValueValidator(Decimal("0"))],
                        verbose_name="valor",
                    ),
                ),
                ("is_percentage", models.BooleanField(default=False, verbose_name="percentual")),
                ("product_ref", models.CharField(blank=True, max_length=64, verbose_name="produto")),
                (
                    "product_quantity",
                    models.PositiveIntegerField(
                        default=1,
                        validators=[django.core.validators.MinValueValidator(1)],
                        verbose_name="quantidade",
                    ),
                ),
                ("max_redemptions_per_client", models.PositiveIntegerField(default=0, verbose_name="máximo por cliente")),
                ("max_total_redemptions", models.PositiveIntegerField(default=0, verbose_name="máximo total")),
                ("total_redemptions", models.PositiveIntegerField(default=0, verbose_name="resgates")),
                ("valid_from", models.DateTimeField(blank=True, null=True, verbose_name="válido a partir de")),
                ("valid_until", models.DateTimeField(blank=True, null=True, verbose_name="válido até")),
                ("is_global", models.BooleanField(default=False, verbose_name="global")),
                ("company_ref", models.CharField(blank=True, max_length=64, verbose_name="empresa")),
                ("branch_ref", models.CharField(blank=True, db_index=True, max_length=64, verbose_name="filial")),
                ("is_active", models.BooleanField(default=True, verbose_name="ativo")),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="criado em")),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="atualizado em")),
            ],
            options={
                "verbose_name": "recompensa",
                "verbose_name_plural": "recompensas",
                "db_table": "pointsman_reward",
                "ordering": ["points_required", "name"],
                "indexes": [
                    models.Index(fields=["branch_ref", "is_active"], name="pointsman_reward_branch_idx"),
                    models.Index(fields=["is_global", "is_active"], name="pointsman_reward_global_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="Redemption",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("client_ref", models.CharField(db_index=True, max_length=64, verbose_name="cliente")),
                ("branch_ref", models.CharField(db_index=True, max_length=64, verbose_name="filial")),
                ("code", models.CharField(max_length=32, unique=True, verbose_name="código")),
                ("points_spent", models.PositiveIntegerField(verbose_name="pontos utilizados")),
                (
                    "status",
                    models.CharField(
                        choices=[("issued", "Emitido"), ("used", "Utilizado"), ("expired", "Expirado")],
                        db_index=True,
                        default="issued",
                        max_length=20,
                        verbose_name="status",
                    ),
                ),
                ("redeemed_at", models.DateTimeField(default=django.utils.timezone.now, verbose_name="resgatado em")),
                ("redeemed_by", models.CharField(blank=True, max_length=100, verbose_name="resgatado por")),
                ("expires_at", models.DateTimeField(blank=True, null=True, verbose_name="expira em")),
                ("used_at", models.DateTimeField(blank=True, null=True, verbose_name="utilizado em")),
                ("used_in_order", models.CharField(blank=True, max_length=100, verbose_name="utilizado no pedido")),
                (
                    "ledger_entry",
                    models.OneToOneField(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="redemption",
                        to="pointsman.ledgerentry",
                        verbose_name="lançamento",
                    ),
                ),
                (
                    "reward",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="redemptions",
                        to="pointsman.reward",
                        verbose_name="recompensa",
                    ),
                ),
            ],
            options={
                "verbose_name": "resgate",
                "verbose_name_plural": "resgates",
                "db_table": "pointsman_redemption",
                "ordering": ["-redeemed_at"],
                "indexes": [
                    models.Index(fields=["client_ref", "reward"], name="pointsman_redeem_client_idx"),
                    models.Index(fields=["status", "expires_at"], name="pointsman_redeem_expiry_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="DigitalCard",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("client_ref", models.CharField(db_index=True, max_length=64, verbose_name="cliente")),
                ("branch_ref", models.CharField(db_index=True, max_length=64, verbose_name="filial")),
                ("serial", models.UUIDField(default=uuid.uuid4, editable=False, unique=True, verbose_name="série")),
                ("rotation_sequence", models.PositiveIntegerField(default=1, verbose_name="geração")),
                ("rotation_enabled", models.BooleanField(default=True, verbose_name="rotação ativa")),
                ("interval_days", models.PositiveIntegerField(default=30, verbose_name="intervalo de rotação (dias)")),
                ("last_rotation", models.DateTimeField(default=django.utils.timezone.now, verbose_name="última rotação")),
                ("next_rotation", models.DateTimeField(blank=True, db_index=True, verbose_name="próxima rotação")),
                ("is_active", models.BooleanField(default=True, verbose_name="ativo")),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="criado em")),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="atualizado em")),
            ],
            options={
                "verbose_name": "cartão digital",
                "verbose_name_plural": "cartões digitais",
                "db_table": "pointsman_digital_card",
                "constraints": [
                    models.UniqueConstraint(fields=("client_ref", "branch_ref"), name="pointsman_unique_card"),
                ],
            },
        ),
        migrations.CreateModel(
            name="CardToken",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("sequence", models.PositiveIntegerField(verbose_name="geração")),
                ("token", models.TextField(verbose_name="token")),
                ("issued_at", models.DateTimeField(verbose_name="emitido em")),
                ("expires_at", models.DateTimeField(verbose_name="expira em")),
                ("superseded_at", models.DateTimeField(blank=True, null=True, verbose_name="substituído em")),
                (
                    "card",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="tokens",
                        to="pointsman.digitalcard",
                        verbose_name="cartão",
                    ),
                ),
            ],
            options={
                "verbose_name": "token de cartão",
                "verbose_name_plural": "tokens de cartão",
                "db_table": "pointsman_card_token",
                "ordering": ["-issued_at"],
                "indexes": [
                    models.Index(fields=["card", "sequence"], name="pointsman_token_card_seq_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="ScanLog",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("client_ref", models.CharField(db_index=True, max_length=64, verbose_name="cliente")),
                ("branch_ref", models.CharField(max_length=64, verbose_name="filial")),
                ("terminal_ref", models.CharField(blank=True, max_length=64, verbose_name="terminal")),
                ("employee_ref", models.CharField(blank=True, max_length=64, verbose_name="funcionário")),
                ("balance_seen", models.IntegerField(verbose_name="saldo exibido")),
                ("eligible_count", models.PositiveIntegerField(default=0, verbose_name="recompensas elegíveis")),
                (
                    "scanned_at",
                    models.DateTimeField(db_index=True, default=django.utils.timezone.now, verbose_name="escaneado em"),
                ),
                (
                    "card",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="scans",
                        to="pointsman.digitalcard",
                        verbose_name="cartão",
                    ),
                ),
            ],
            options={
                "verbose_name": "leitura de cartão",
                "verbose_name_plural": "leituras de cartão",
                "db_table": "pointsman_scan_log",
                "ordering": ["-scanned_at"],
            },
        ),
        migrations.CreateModel(
            name="ProcessedEvent",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("nonce", models.CharField(db_index=True, max_length=255, unique=True, verbose_name="nonce")),
                ("kind", models.CharField(db_index=True, max_length=50, verbose_name="tipo")),
                ("processed_at", models.DateTimeField(auto_now_add=True, verbose_name="processado em")),
            ],
            options={
                "verbose_name": "evento processado",
                "verbose_name_plural": "eventos processados",
                "db_table": "pointsman_processed_event",
                "indexes": [
                    models.Index(fields=["kind", "processed_at"], name="pointsman_event_kind_idx"),
                ],
            },
        ),
    ]
