ALERT_TITLES = {
    'price_below': 'Price dropped below your alert',
    'price_above': 'Price rose above your alert',
    'target_reached': 'Target price reached',
    'cutoff_reached': 'Cutoff price reached',
}


def prepare_alert_email_body(trigger, stock_name=None):
    title = ALERT_TITLES.get(trigger.alert_type, 'Price alert')
    stock_label = f"{trigger.symbol} ({stock_name})" if stock_name else trigger.symbol
    return f"""<html>
  <body>
    <p>Hello,</p>
    <p>This is a <strong>Finora</strong> price alert for <strong>{stock_label}</strong>.</p>
    <h3>{title}</h3>
    <p><em>{trigger.message}</em></p>
    <ul>
      <li>Current price: {trigger.current_price:,.2f}</li>
      <li>Alert price: {trigger.target_price:,.2f}</li>
    </ul>
    <p>This alert has been deactivated. You can re-enable it from your alerts page.</p>
    <p>Kind regards,<br>Finora</p>
  </body>
</html>
"""
